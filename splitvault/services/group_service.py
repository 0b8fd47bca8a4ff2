"""
GROUP REGISTRY
==============

Handles:
- Creating groups (caller becomes admin and first member)
- Group lookup
- Per-user group index
"""

import logging

from splitvault.extensions import db
from splitvault.models import Group, GroupMember
from splitvault.services.errors import LedgerError, NotFoundError, InvalidInputError
from splitvault.services.event_service import emit_event, GROUP_CREATED
from splitvault.services.guard import ledger_guard

logger = logging.getLogger(__name__)


def _member_list(admin, members):
    """Admin first, then members in order; repeated addresses keep their first position"""
    ordered = []
    seen = set()
    for address in [admin] + list(members or []):
        if not address or not isinstance(address, str):
            raise InvalidInputError("Member addresses must be non-empty strings")
        if address in seen:
            continue
        seen.add(address)
        ordered.append(address)
    return ordered


# ============================================================
# CREATE GROUP
# ============================================================

@ledger_guard
def create_group(admin, name, members):
    """
    Create a group administered by `admin`.

    ATOMIC: group row, member rows and GroupCreated event commit together.

    Returns: Group
    """
    try:
        name = (name or '').strip()
        if not name:
            raise InvalidInputError("Group name is required")

        addresses = _member_list(admin, members)

        group = Group(name=name, admin=admin)
        db.session.add(group)
        db.session.flush()

        for position, address in enumerate(addresses):
            db.session.add(GroupMember(
                group_id=group.id,
                address=address,
                position=position
            ))
        db.session.flush()

        emit_event(
            GROUP_CREATED,
            group_id=group.id,
            name=name,
            admin=admin,
            members=addresses
        )

        db.session.commit()
        return group

    except LedgerError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Group creation failed")
        raise LedgerError(f"Failed to create group: {str(e)}")


# ============================================================
# QUERIES
# ============================================================

def get_group(group_id):
    """Fetch a group; id 0 is never a group"""
    group = db.session.get(Group, group_id) if group_id else None
    if not group:
        raise NotFoundError(f"Group {group_id} not found")
    return group


def get_user_groups(address):
    """Groups `address` belongs to, in the order they were created"""
    memberships = GroupMember.query.filter_by(address=address).order_by(GroupMember.id).all()
    return [m.group for m in memberships]


def get_user_group_ids(address):
    return [g.id for g in get_user_groups(address)]
