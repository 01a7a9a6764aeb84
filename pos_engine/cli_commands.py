"""
Flask CLI commands for the POS host.

Commands:
- flask init-db: Create the transaction and shift tables
- flask list-transactions: Print the most recent stored transactions
"""

import click

from pos_engine import database
from pos_engine.utils.formatters import datetime_label, money


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create database tables."""
        try:
            if drop:
                database.drop_all()
                click.echo('Dropped existing tables.')
            database.create_all()
        except Exception as e:
            raise click.ClickException(f'Database initialization failed: {e}')
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('list-transactions')
    @click.option('--limit', default=20, show_default=True, help='Number of transactions to show')
    @click.option('--status', default=None, help='Filter by status (completed, refunded...)')
    def list_transactions_command(limit, status):
        """List stored transactions, newest first."""
        from pos_engine.services.transaction_store import list_transactions

        symbol = app.config.get('CURRENCY_SYMBOL', '')
        transactions = list_transactions(database.get_session(), status=status, limit=limit)
        if not transactions:
            click.echo('No transactions found.')
            return
        for txn in transactions:
            click.echo(
                f'{txn.number}  {txn.status.value:<10} {datetime_label(txn.created_at)}  '
                f'{money(txn.total_cents, symbol):>12}'
            )
