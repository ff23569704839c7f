from typing import Any, Dict, Optional
from milkcart.common.utils import iso
from milkcart.schema.full_schema import DeliveryPerson


def delivery_person_to_dict(person: DeliveryPerson) -> Dict[str, Any]:
    return {
        "delivery_person_id": str(person.public_id),
        "name": person.name,
        "phone": person.phone,
        "email": person.email,
        "vehicle_number": person.vehicle_number,
        "delivery_shift": person.delivery_shift,
        "approval_status": person.approval_status,
        "is_suspended": person.is_suspended,
        "suspension_reason": person.suspension_reason,
        "total_deliveries": person.total_deliveries,
        "approved_at": iso(person.approved_at),
        "created_at": iso(person.created_at),
    }


def assignment_to_dict(assignment, person: Optional[DeliveryPerson] = None, user=None) -> Dict[str, Any]:
    return {
        "assignment_id": str(assignment.public_id),
        "user_id": str(user.public_id) if user else None,
        "user_name": user.name if user else None,
        "delivery_person_id": str(person.public_id) if person else None,
        "delivery_person_name": person.name if person else None,
        "delivery_shifts": assignment.delivery_shifts,
        "notes": assignment.notes,
        "is_active": assignment.is_active,
        "created_at": iso(assignment.created_at),
        "deactivated_at": iso(assignment.deactivated_at),
    }
