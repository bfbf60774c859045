# lunaexecutor/cli.py
"""
Maintenance commands for the Flask CLI.

Usage:
    flask --app lunaexecutor init-db
    flask --app lunaexecutor check-db
    flask --app lunaexecutor seed-db
    flask --app lunaexecutor promote-admin USERNAME [--revoke]
"""
from decimal import Decimal
import click
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash
from . import db
from .repository import get_repository

SEED_USERS = [
    {'username': 'user1', 'email': 'user1@lunaexecutor.com', 'password': 'password123'},
    {'username': 'admin', 'email': 'admin@lunaexecutor.com', 'password': 'admin12345', 'admin': True},
]

SEED_PRODUCTS = [
    {
        'name': 'LunaExecutor Basic',
        'description': 'Perfect for getting started',
        'price': Decimal('9.99'),
        'badge': 'Popular',
        'badge_variant': 'secondary',
        'features': ['Basic execution features', 'Standard support', 'Regular updates'],
    },
    {
        'name': 'LunaExecutor Pro',
        'description': 'For power users',
        'price': Decimal('29.99'),
        'badge': 'Recommended',
        'badge_variant': 'default',
        'features': ['Advanced execution features', 'Priority support', 'Early access to updates'],
    },
]


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables."""
    db.create_all()
    click.echo('Tables created.')


@click.command('check-db')
@with_appcontext
def check_db_command():
    """List registered users."""
    users = get_repository().list_users()
    click.echo(f'Users in database: {len(users)}')
    for user in users:
        flags = []
        if user.is_admin:
            flags.append('admin')
        if user.is_verified:
            flags.append('verified')
        click.echo(f'{user.id:>4}  {user.username:<20} {user.email:<30} {",".join(flags)}')


@click.command('seed-db')
@with_appcontext
def seed_db_command():
    """Insert demo users and products."""
    repository = get_repository()
    for data in SEED_USERS:
        if repository.get_user_by_username(data['username']):
            click.echo(f"User {data['username']} already exists, skipping.")
            continue
        user = repository.create_user(
            data['username'], data['email'],
            generate_password_hash(data['password'], method='pbkdf2:sha256'),
        )
        repository.verify_user(user)
        if data.get('admin'):
            repository.set_admin(user)
        click.echo(f"Created user {user.username}.")

    if not repository.list_products():
        for data in SEED_PRODUCTS:
            product = repository.create_product(**data)
            click.echo(f"Created product {product.name}.")


@click.command('promote-admin')
@with_appcontext
@click.argument('username')
@click.option('--revoke', is_flag=True, help='Remove admin rights instead of granting them.')
def promote_admin_command(username, revoke):
    """Grant (or revoke) admin rights for USERNAME."""
    repository = get_repository()
    user = repository.get_user_by_username(username)
    if user is None:
        raise click.ClickException(f'No user named {username}.')
    repository.set_admin(user, not revoke)
    click.echo(f"{username} is {'no longer' if revoke else 'now'} an admin.")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(check_db_command)
    app.cli.add_command(seed_db_command)
    app.cli.add_command(promote_admin_command)
