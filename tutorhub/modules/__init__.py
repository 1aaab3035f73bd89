"""Domain modules package."""

from tutorhub.modules.appointments import models as appointments_models  # noqa: F401
from tutorhub.modules.audit import models as audit_models  # noqa: F401
from tutorhub.modules.availability import models as availability_models  # noqa: F401
from tutorhub.modules.identity import models as identity_models  # noqa: F401
from tutorhub.modules.ledger import models as ledger_models  # noqa: F401
from tutorhub.modules.tutors import models as tutors_models  # noqa: F401
