"""Read-only translator and customer directory backed by Postgres."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.bookings.models import Customer, Translator
from app.schema.bookings import CustomerRow, TranslatorRow
from app.storage.job_store import CustomerDirectory, TranslatorDirectory
from app.utils.db_retry import execute_with_retry


def _row_to_translator(row: TranslatorRow) -> Translator:
  return Translator(
    translator_id=row.translator_id,
    name=row.name,
    languages=frozenset(language.lower() for language in row.languages or ()),
    available=row.available,
    towns=frozenset(row.towns or ()),
    gender=row.gender,
    certified=row.certified,
    blocked_customer_ids=frozenset(row.blocked_customer_ids or ()),
    push_token=row.push_token,
    phone_number=row.phone_number,
  )


class PostgresDirectory(TranslatorDirectory, CustomerDirectory):
  """Look up translators and customers maintained by the user service."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
    self._session_factory = session_factory

  async def get_translator(self, translator_id: str) -> Translator | None:
    async def _load() -> Translator | None:
      async with self._session_factory() as session:
        row = await session.get(TranslatorRow, translator_id)
        return _row_to_translator(row) if row is not None else None

    return await execute_with_retry(operation_name="translator lookup", func=_load)

  async def list_translators(self) -> list[Translator]:
    async def _load() -> list[Translator]:
      async with self._session_factory() as session:
        rows = (await session.scalars(select(TranslatorRow).order_by(TranslatorRow.translator_id))).all()
        return [_row_to_translator(row) for row in rows]

    return await execute_with_retry(operation_name="translator pool lookup", func=_load)

  async def get_customer(self, customer_id: str) -> Customer | None:
    async def _load() -> Customer | None:
      async with self._session_factory() as session:
        row = await session.get(CustomerRow, customer_id)
        if row is None:
          return None
        return Customer(customer_id=row.customer_id, name=row.name, push_token=row.push_token, phone_number=row.phone_number, email=row.email)

    return await execute_with_retry(operation_name="customer lookup", func=_load)
