"""Dependency injection module for FastAPI.

Every manager gets a request-scoped DB session from ``get_db``.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from utils import admission_controller
from utils import batch_manager
from utils import class_manager
from utils import join_request_manager
from utils import signup_code_registry
from utils import usage_ledger
from utils import user_manager


def get_user_manager(db: Session = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_batch_manager(db: Session = Depends(get_db)) -> batch_manager.BatchManager:
    """Get BatchManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        BatchManager instance.
    """
    return batch_manager.BatchManager(db)


def get_signup_code_registry(
    db: Session = Depends(get_db),
) -> signup_code_registry.SignupCodeRegistry:
    """Get SignupCodeRegistry instance with request-scoped DB session."""
    return signup_code_registry.SignupCodeRegistry(db)


def get_usage_ledger(db: Session = Depends(get_db)) -> usage_ledger.UsageLedger:
    """Get UsageLedger instance with request-scoped DB session."""
    return usage_ledger.UsageLedger(db)


def get_class_manager(db: Session = Depends(get_db)) -> class_manager.ClassManager:
    """Get ClassManager instance with request-scoped DB session."""
    return class_manager.ClassManager(db)


def get_join_request_manager(
    db: Session = Depends(get_db),
) -> join_request_manager.JoinRequestManager:
    """Get JoinRequestManager instance with request-scoped DB session."""
    return join_request_manager.JoinRequestManager(db)


def get_admission_controller(
    db: Session = Depends(get_db),
) -> admission_controller.AdmissionController:
    """Get AdmissionController instance with request-scoped DB session."""
    return admission_controller.AdmissionController(db)


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
BatchManagerDep = Annotated[
    batch_manager.BatchManager, Depends(get_batch_manager)
]
SignupCodeRegistryDep = Annotated[
    signup_code_registry.SignupCodeRegistry, Depends(get_signup_code_registry)
]
UsageLedgerDep = Annotated[
    usage_ledger.UsageLedger, Depends(get_usage_ledger)
]
ClassManagerDep = Annotated[
    class_manager.ClassManager, Depends(get_class_manager)
]
JoinRequestManagerDep = Annotated[
    join_request_manager.JoinRequestManager, Depends(get_join_request_manager)
]
AdmissionControllerDep = Annotated[
    admission_controller.AdmissionController, Depends(get_admission_controller)
]
