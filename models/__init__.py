from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .login_session import LoginSession
from .service import Service
from .booking import Booking
from .zoom_session import ZoomSession
from .payment import Payment
