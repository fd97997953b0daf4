from __future__ import annotations

from functools import lru_cache
from typing import Iterator

import sqlalchemy as sa
from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from core import identity
from core.auth import Caller, get_caller
from core.identity import IdentityProvider
from core.notify import Notifier, get_notifier
from core.security.access import AccessContext, build_access_context
from core.settings import get_settings
from storage.entity_store import EntityStore
from storage.object_store import ObjectStore, buckets_from_settings, create_client

settings = get_settings()
engine = sa.create_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Iterator[Session]:
    with SessionLocal() as session:
        yield session


def get_store(db: Session = Depends(get_db)) -> EntityStore:
    return EntityStore(db)


@lru_cache()
def get_object_store() -> ObjectStore:
    client = create_client(region=settings.aws_region, endpoint=settings.s3_endpoint)
    return ObjectStore(client=client, buckets=buckets_from_settings(settings))


@lru_cache()
def get_identity_provider() -> IdentityProvider:
    return IdentityProvider(
        client=identity.create_client(region=settings.aws_region),
        user_pool_id=settings.user_pool_id,
    )


def get_event_notifier() -> Notifier:
    return get_notifier()


def get_access_context(
    caller: Caller = Depends(get_caller),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AccessContext:
    return build_access_context(caller, provider)


def require_admin(ctx: AccessContext = Depends(get_access_context)) -> AccessContext:
    ctx.require_admin()
    return ctx
