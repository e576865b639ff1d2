# Import all the models, so that Base has them before being
# imported by Alembic
from compadvisor.db.base_class import Base  # noqa

from compadvisor.models.employee import Employee  # noqa
from compadvisor.models.action_record import ActionRecord  # noqa
