from models import db
from models.enums import Roles
from models.user import Role

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in Roles.ALL:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()
