# -*- coding: utf-8 -*-
"""
Menu preference model.
One document per user holding the ordered list of menu items and their hidden flags.
"""

from expensehub.utils.dates import utcnow
from expensehub import db


class UserMenuPreference(db.Model):
    __tablename__ = "user_menu_preference"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="CASCADE"), nullable=False, unique=True)
    menu_items_order = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        count = len(self.menu_items_order or [])
        return f"<UserMenuPreference user={self.user_id} items={count}>"
