import enum
import logging
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from utils.errors import Conflict, NotFound, StoreFailure, WorkflowError

logger = logging.getLogger(__name__)

db = SQLAlchemy()


@contextmanager
def transaction():
    """Run a unit of work and commit it, or roll everything back."""
    try:
        yield db.session
        db.session.commit()
    except WorkflowError:
        db.session.rollback()
        raise
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Integrity violation, rolled back: %s", e.orig)
        raise Conflict("Request conflicts with existing data") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Transaction failed, rolled back")
        raise StoreFailure("Server error") from e
    except Exception:
        db.session.rollback()
        raise


def conditional_update(model, entity_id, expected, *criteria, **values):
    """Write ``values`` only if the row still has one of the ``expected`` statuses
    and matches any extra ``criteria``.

    Zero rows affected means a concurrent writer moved the row first.
    """
    if isinstance(expected, enum.Enum):
        expected = (expected,)
    result = db.session.execute(
        update(model)
        .where(model.id == entity_id, model.status.in_(list(expected)), *criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Conditional write on %s %s lost the race", model.__name__, entity_id)
        raise Conflict(f"{model.__name__} {entity_id} was modified by another request")


def fetch(model, entity_id, label=None):
    instance = db.session.get(model, entity_id)
    if instance is None:
        raise NotFound(f"{label or model.__name__} not found")
    return instance
