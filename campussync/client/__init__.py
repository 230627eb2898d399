from .api import CampusSyncClient
from .review import CertificateQueue, RoleChangeDialog, RoleRequestQueue
