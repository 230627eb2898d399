from .organization import Organization
from .user import User
from .role_assignment import RoleAssignment
from .role_request import RoleRequest
from .faculty_approval import FacultyApproval
from .certificate import Certificate
from .credential import VerifiableCredential
from .audit_log import AuditLog
from .notification import Notification
# base and mixins are imported by the above as needed
