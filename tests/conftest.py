# ============================================================================
# Test Configuration & Fixtures
# ============================================================================
import pytest
from datetime import datetime
from typing import AsyncGenerator, Dict
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.models.user import User, UserRole, SubscriptionTier

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    test_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()

@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

async def make_user(
    db: AsyncSession,
    email: str,
    role: UserRole = UserRole.STUDENT,
    tier: SubscriptionTier = SubscriptionTier.FREE,
    created_at: datetime = None,
    **kwargs
) -> User:
    user = User(
        email=email,
        role=role,
        subscription_tier=tier,
        is_active=kwargs.pop("is_active", True),
        created_at=created_at or datetime.utcnow(),
        **kwargs
    )
    db.add(user)
    await db.commit()
    return user

def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}

@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@yoga.test", role=UserRole.ADMIN, first_name="Ada", last_name="Admin")

@pytest.fixture
async def regular_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "member@yoga.test", first_name="Mia", last_name="Member")

@pytest.fixture
def admin_headers(admin_user: User) -> Dict[str, str]:
    return auth_headers(admin_user)

@pytest.fixture
def user_headers(regular_user: User) -> Dict[str, str]:
    return auth_headers(regular_user)
