# lunaexecutor/repository.py
"""Persistence for users, chat messages, stats and products.

Failed writes roll back and raise StorageError.
"""
import logging
import secrets
from datetime import datetime, timezone
from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from . import db
from .errors import NotFoundError, StorageError
from .models import ChatMessage, Product, User, UserStat

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

PRODUCT_FIELDS = frozenset({
    'name', 'description', 'price', 'image_url', 'version', 'download_url',
    'badge', 'badge_variant', 'button_text', 'button_variant', 'features',
})
# is_admin changes only through set_admin
USER_EDITABLE_FIELDS = frozenset({'username', 'email', 'password_hash'})


class Repository:
    def __init__(self, database=db):
        self.db = database

    @property
    def session(self):
        return self.db.session

    def _commit(self, action):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Storage failure while %s: %s", action, e, exc_info=True)
            raise StorageError(f"Could not {action}.") from e

    def _scalars(self, stmt, action):
        try:
            return list(self.session.scalars(stmt))
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Storage failure while %s: %s", action, e, exc_info=True)
            raise StorageError(f"Could not {action}.") from e

    # --- CHAT ---

    def save_chat_message(self, user_id, content, timestamp, is_admin):
        message = ChatMessage(
            user_id=user_id,
            content=content,
            timestamp=timestamp,
            is_admin=bool(is_admin),
        )
        self.session.add(message)
        self._commit('save chat message')
        logger.debug("Chat message %s saved for user %s", message.id, user_id)
        return message

    def get_chat_history(self, limit=DEFAULT_HISTORY_LIMIT):
        if limit is None:
            limit = DEFAULT_HISTORY_LIMIT
        if limit <= 0:
            return []
        stmt = (
            select(ChatMessage)
            .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
            .limit(limit)
        )
        return self._scalars(stmt, 'load chat history')

    # --- STATS ---

    def get_user_stats(self, user_id):
        stmt = select(UserStat).filter_by(user_id=user_id).order_by(UserStat.date.asc())
        return self._scalars(stmt, 'load user stats')

    def record_execution(self, user_id, success, day=None):
        """Count one execution for ``user_id`` in the ``day`` bucket and refresh the user's totals."""
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        day = day or datetime.now(timezone.utc).date()

        stat = self.session.scalars(
            select(UserStat).filter_by(user_id=user_id, date=day)
        ).first()
        if stat is None:
            stat = UserStat(user_id=user_id, date=day, executions=0, successes=0, failures=0)
            self.session.add(stat)
        stat.executions += 1
        if success:
            stat.successes += 1
        else:
            stat.failures += 1

        try:
            self.session.flush()
            executions, successes = self.session.execute(
                select(
                    func.coalesce(func.sum(UserStat.executions), 0),
                    func.coalesce(func.sum(UserStat.successes), 0),
                ).where(UserStat.user_id == user_id)
            ).one()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Storage failure while recording execution: %s", e, exc_info=True)
            raise StorageError("Could not record execution.") from e

        user.total_tasks = (user.total_tasks or 0) + 1
        user.success_rate = round(100 * successes / executions) if executions else 0

        self._commit('record execution')
        return stat

    # --- USERS ---

    def get_user(self, user_id):
        try:
            return self.session.get(User, int(user_id))
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Storage failure while loading user %s: %s", user_id, e, exc_info=True)
            raise StorageError("Could not load user.") from e

    def get_user_by_username(self, username):
        return self.session.scalars(select(User).filter_by(username=username)).first()

    def get_user_by_email(self, email):
        return self.session.scalars(select(User).filter_by(email=email)).first()

    def get_user_by_verification_token(self, token):
        if not token:
            return None
        return self.session.scalars(select(User).filter_by(verification_token=token)).first()

    def list_users(self):
        return self._scalars(select(User).order_by(User.id), 'list users')

    def create_user(self, username, email, password_hash):
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            verification_token=secrets.token_hex(32),
        )
        self.session.add(user)
        self._commit('create user')
        logger.info("User %s created (id=%s)", user.username, user.id)
        return user

    def verify_user(self, user):
        user.is_verified = True
        user.verification_token = None
        self._commit('verify user')
        return user

    def update_user(self, user, **fields):
        unknown = set(fields) - USER_EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
        for key, value in fields.items():
            setattr(user, key, value)
        self._commit('update user')
        return user

    def record_login(self, user, when):
        user.last_login = when
        self._commit('record login')
        return user

    def set_admin(self, user, is_admin=True):
        user.is_admin = bool(is_admin)
        self._commit('change admin flag')
        logger.warning("Admin flag for %s set to %s", user.username, user.is_admin)
        return user

    # --- PRODUCTS ---

    def list_products(self):
        return self._scalars(select(Product).order_by(Product.id), 'list products')

    def get_product(self, product_id):
        return self.session.get(Product, product_id)

    def _get_product_or_raise(self, product_id):
        product = self.get_product(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found.")
        return product

    def create_product(self, **fields):
        unknown = set(fields) - PRODUCT_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {', '.join(sorted(unknown))}")
        product = Product(**fields)
        self.session.add(product)
        self._commit('create product')
        logger.info("Product %s created (id=%s)", product.name, product.id)
        return product

    def update_product(self, product_id, **fields):
        unknown = set(fields) - PRODUCT_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {', '.join(sorted(unknown))}")
        product = self._get_product_or_raise(product_id)
        for key, value in fields.items():
            setattr(product, key, value)
        self._commit('update product')
        logger.info("Product %s updated", product_id)
        return product

    def delete_product(self, product_id):
        product = self._get_product_or_raise(product_id)
        self.session.delete(product)
        self._commit('delete product')
        logger.info("Product %s deleted", product_id)


def get_repository():
    """The repository bound to the running app."""
    return current_app.extensions['repository']
