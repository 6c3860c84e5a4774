"""
Customer Module - Service Layer
=================================
Account settings: the saved shipping profile used as checkout default.
"""

from sqlalchemy.orm import Session

from common.exceptions import ValidationError
from common.helpers import clean_str
from modules.order.checkout import ShippingInfo
from modules.user.models import User


def profile_to_dict(user: User) -> dict:
    return {
        "username": user.username,
        "email": user.email,
        "real_name": user.real_name,
        "phone": user.phone,
        "address": user.address,
    }


class ProfileService:

    def update_shipping_profile(self, db: Session, user: User, real_name, phone, address) -> User:
        """Replace the saved shipping profile. All three fields are required."""
        real_name, phone, address = clean_str(real_name), clean_str(phone), clean_str(address)
        if not real_name or not phone or not address:
            raise ValidationError("All fields are required")
        ShippingInfo(name=real_name, address=address, phone=phone).check_lengths()

        user.real_name = real_name
        user.phone = phone
        user.address = address
        db.flush()
        return user


# Singleton
profile_service = ProfileService()
