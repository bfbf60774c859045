# lunaexecutor/blueprints/products.py
import logging
from functools import wraps
from flask import Blueprint, jsonify, request
from flask_login import current_user
from pydantic import ValidationError
from lunaexecutor.errors import StorageError
from lunaexecutor.repository import get_repository
from lunaexecutor.schemas import ProductCreate, ProductUpdate, first_error

products_bp = Blueprint('products', __name__)

logger = logging.getLogger(__name__)

# columns that may not be cleared through a PATCH
NOT_NULLABLE = ('name', 'description', 'price', 'features')


def admin_required(view):
    """Reject anyone who is not a logged-in admin with 403, before the view runs."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_admin:
            logger.warning("Forbidden %s %s for %s", request.method, request.path,
                           getattr(current_user, 'username', 'anonymous'))
            return jsonify({'error': 'Admin access required.'}), 403
        return view(*args, **kwargs)
    return wrapped


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@products_bp.route('', methods=['GET'])
def list_products():
    try:
        products = get_repository().list_products()
    except StorageError as e:
        return jsonify({'error': str(e)}), 500
    return jsonify([product.to_dict() for product in products])


@products_bp.route('', methods=['POST'])
@admin_required
def create_product():
    try:
        payload = ProductCreate.model_validate(_json_body())
    except ValidationError as e:
        return jsonify({'error': first_error(e)}), 400
    try:
        product = get_repository().create_product(**payload.model_dump())
    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(product.to_dict()), 201


@products_bp.route('/<int:product_id>', methods=['PATCH'])
@admin_required
def update_product(product_id):
    try:
        payload = ProductUpdate.model_validate(_json_body())
    except ValidationError as e:
        return jsonify({'error': first_error(e)}), 400

    changes = payload.model_dump(exclude_unset=True)
    cleared = [field for field in NOT_NULLABLE if field in changes and changes[field] is None]
    if cleared:
        return jsonify({'error': f"{cleared[0]}: may not be null"}), 400
    try:
        product = get_repository().update_product(product_id, **changes)
    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(product.to_dict())


@products_bp.route('/<int:product_id>', methods=['DELETE'])
@admin_required
def delete_product(product_id):
    try:
        get_repository().delete_product(product_id)
    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    return '', 204
