from .base import Base
from .batch import BatchModel
from .class_enrollment import ClassEnrollmentModel
from .class_model import ClassModel
from .join_request import JoinRequestModel
from .signup_code import SignupCodeModel
from .signup_code_event import SignupCodeEventModel
from .usage_log import UsageLogModel
from .user import UserModel

__all__ = [
    "Base",
    "BatchModel",
    "ClassEnrollmentModel",
    "ClassModel",
    "JoinRequestModel",
    "SignupCodeModel",
    "SignupCodeEventModel",
    "UsageLogModel",
    "UserModel",
]
