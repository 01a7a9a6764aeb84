"""Database configuration and initialization."""
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _engine_options(database_uri: str, echo: bool) -> dict:
    """Pool options per backend; in-memory SQLite must share one connection."""
    if database_uri.startswith('sqlite'):
        options = {'echo': echo, 'connect_args': {'check_same_thread': False}}
        if ':memory:' in database_uri or database_uri in ('sqlite://', 'sqlite:///'):
            options['poolclass'] = StaticPool
        return options
    return {
        'echo': echo,
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }


def init_engine(database_uri: str, echo: bool = False):
    """Create the engine and session factory (usable without Flask)."""
    global engine, db_session

    engine = create_engine(database_uri, **_engine_options(database_uri, echo))
    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )
    Base.query = db_session.query_property()
    return engine


def init_db(app):
    """Initialize database connection for a Flask app."""
    init_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False)
    )

    if app.config.get('AUTO_CREATE_TABLES', False):
        create_all()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create all tables known to the records module."""
    from pos_engine.models import records  # noqa: F401  (registers tables on Base)
    Base.metadata.create_all(bind=engine)


def drop_all():
    from pos_engine.models import records  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session
