from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from app.bookings.commands import JobSpec, JobUpdate
from app.bookings.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.bookings.models import Actor, ActorRole, JobStatus

from tests.support import make_translator

CUSTOMER = Actor(actor_id="C1", role=ActorRole.CUSTOMER)
ADMIN = Actor(actor_id="A1", role=ActorRole.ADMIN)


def _spec(**overrides) -> JobSpec:
  values = {"from_language": "en", "to_language": "de", "due_at": datetime(2026, 3, 5, 14, 0, tzinfo=UTC), "duration_minutes": 60} | overrides
  return JobSpec(**values)


async def _create(harness, **overrides):
  return await harness.engine.create("C1", _spec(**overrides))


@pytest.mark.anyio
async def test_create_offers_to_every_eligible_translator(harness):
  job = await _create(harness)

  assert job.status == JobStatus.OFFERED
  assert job.candidate_ids == ("T1", "T2")
  assert job.offer_round == 1
  assert job.offer_dispatched_at is not None
  assert job.translator_id is None
  assert harness.transport.push_events("token-T1") == ["offer"]
  assert harness.transport.push_events("token-T2") == ["offer"]
  assert sorted(number for number, _ in harness.transport.sms) == ["+46700001", "+46700002"]


@pytest.mark.anyio
async def test_create_for_unknown_customer_fails(harness):
  with pytest.raises(NotFoundError):
    await harness.engine.create("C404", _spec())


@pytest.mark.anyio
async def test_create_without_candidates_sends_nothing(harness):
  job = await _create(harness, to_language="fi")

  assert job.status == JobStatus.OFFERED
  assert job.candidate_ids == ()
  assert job.offer_dispatched_at is not None
  assert harness.transport.pushes == []
  assert harness.transport.sms == []


@pytest.mark.anyio
async def test_accept_binds_translator_and_tells_the_others(harness):
  job = await _create(harness)
  harness.transport.clear()

  accepted = await harness.engine.accept(job.job_id, "T2")

  assert accepted.status == JobStatus.ACCEPTED
  assert accepted.translator_id == "T2"
  assert accepted.accepted_at == harness.clock.now
  assert harness.transport.push_events("token-T1") == ["accepted"]
  assert harness.transport.push_events("token-C1") == ["accepted"]
  assert harness.transport.push_events("token-T2") == []


@pytest.mark.anyio
async def test_second_accept_conflicts(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")

  with pytest.raises(ConflictError):
    await harness.engine.accept(job.job_id, "T1")

  with pytest.raises(ConflictError):
    await harness.engine.accept(job.job_id, "T2")

  stored = await harness.queries.get_job(job.job_id)
  assert stored.translator_id == "T2"


@pytest.mark.anyio
async def test_accept_requires_a_current_candidate(harness):
  job = await _create(harness)
  harness.directory.add_translator(make_translator("T3"))

  with pytest.raises(ConflictError):
    await harness.engine.accept(job.job_id, "T3")

  with pytest.raises(NotFoundError):
    await harness.engine.accept(job.job_id, "T9")


@pytest.mark.anyio
async def test_accept_by_id_roles(harness):
  job = await _create(harness)
  harness.directory.add_translator(make_translator("T3"))

  with pytest.raises(ForbiddenError):
    await harness.engine.accept_by_id(job.job_id, CUSTOMER, "T1")

  with pytest.raises(ForbiddenError):
    await harness.engine.accept_by_id(job.job_id, Actor(actor_id="T1", role=ActorRole.TRANSLATOR), "T2")

  with pytest.raises(ValidationError):
    await harness.engine.accept_by_id(job.job_id, ADMIN)

  accepted = await harness.engine.accept_by_id(job.job_id, ADMIN, "T3")
  assert accepted.translator_id == "T3"


@pytest.mark.anyio
async def test_translator_accepts_for_themselves(harness):
  job = await _create(harness)

  accepted = await harness.engine.accept_by_id(job.job_id, Actor(actor_id="T1", role=ActorRole.TRANSLATOR))

  assert accepted.translator_id == "T1"


@pytest.mark.anyio
async def test_assign_is_a_no_op_inside_the_offer_window(harness):
  job = await _create(harness)
  harness.transport.clear()

  harness.clock.advance(minutes=5)
  same = await harness.engine.assign(job.job_id)

  assert same.offer_round == 1
  assert same.version == job.version
  assert harness.transport.pushes == []


@pytest.mark.anyio
async def test_assign_reoffers_after_the_window(harness):
  job = await _create(harness)
  harness.transport.clear()
  harness.directory.add_translator(make_translator("T3"))

  harness.clock.advance(minutes=16)
  reoffered = await harness.engine.assign(job.job_id)

  assert reoffered.status == JobStatus.OFFERED
  assert reoffered.offer_round == 2
  assert reoffered.candidate_ids == ("T1", "T2", "T3")
  assert reoffered.offered_at == harness.clock.now
  assert harness.transport.push_events("token-T3") == ["reoffer"]


@pytest.mark.anyio
async def test_assign_on_accepted_job_is_invalid(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T1")

  with pytest.raises(InvalidStateError):
    await harness.engine.assign(job.job_id)


@pytest.mark.anyio
async def test_decline_removes_translator_from_later_offers(harness):
  job = await _create(harness)

  declined = await harness.engine.decline(job.job_id, "T1")
  assert declined.candidate_ids == ("T2",)
  assert declined.declined_ids == ("T1",)

  with pytest.raises(ConflictError):
    await harness.engine.accept(job.job_id, "T1")

  harness.clock.advance(minutes=20)
  reoffered = await harness.engine.assign(job.job_id)
  assert reoffered.candidate_ids == ("T2",)


@pytest.mark.anyio
async def test_decline_by_non_candidate_conflicts(harness):
  job = await _create(harness)
  await harness.engine.decline(job.job_id, "T1")

  with pytest.raises(ConflictError):
    await harness.engine.decline(job.job_id, "T1")


@pytest.mark.anyio
async def test_start_only_by_assignee(harness):
  job = await _create(harness)

  with pytest.raises(InvalidStateError):
    await harness.engine.start(job.job_id, ADMIN)

  await harness.engine.accept(job.job_id, "T2")

  with pytest.raises(ForbiddenError):
    await harness.engine.start(job.job_id, Actor(actor_id="T1", role=ActorRole.TRANSLATOR))

  started = await harness.engine.start(job.job_id, Actor(actor_id="T2", role=ActorRole.TRANSLATOR))
  assert started.status == JobStatus.IN_PROGRESS
  assert started.started_at == harness.clock.now


@pytest.mark.anyio
async def test_customer_cancel_notifies_assignee_and_is_idempotent(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")
  harness.transport.clear()

  cancelled = await harness.engine.cancel(job.job_id, CUSTOMER)

  assert cancelled.status == JobStatus.CANCELLED
  assert cancelled.translator_id is None
  assert cancelled.cancelled_by == ActorRole.CUSTOMER
  assert harness.transport.push_events("token-T2") == ["cancelled"]
  assert harness.transport.push_events("token-C1") == []

  harness.transport.clear()
  again = await harness.engine.cancel(job.job_id, CUSTOMER)
  assert again.status == JobStatus.CANCELLED
  assert again.version == cancelled.version
  assert harness.transport.pushes == []


@pytest.mark.anyio
async def test_customer_cancel_of_open_offer_notifies_candidates(harness):
  job = await _create(harness)
  harness.transport.clear()

  await harness.engine.cancel(job.job_id, CUSTOMER)

  assert sorted(harness.transport.push_tokens()) == ["token-T1", "token-T2"]


@pytest.mark.anyio
async def test_translator_cancel_excludes_them_and_tells_customer(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")
  harness.transport.clear()

  cancelled = await harness.engine.cancel(job.job_id, Actor(actor_id="T2", role=ActorRole.TRANSLATOR))

  assert cancelled.excluded_ids == ("T2",)
  assert harness.transport.push_events("token-C1") == ["cancelled"]


@pytest.mark.anyio
async def test_cancel_authorization(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")

  with pytest.raises(ForbiddenError):
    await harness.engine.cancel(job.job_id, Actor(actor_id="C2", role=ActorRole.CUSTOMER))

  with pytest.raises(ForbiddenError):
    await harness.engine.cancel(job.job_id, Actor(actor_id="T1", role=ActorRole.TRANSLATOR))


@pytest.mark.anyio
async def test_end_records_session_time_and_notifies_both_sides(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")
  await harness.engine.start(job.job_id, Actor(actor_id="T2", role=ActorRole.TRANSLATOR))
  harness.transport.clear()

  harness.clock.advance(minutes=90, seconds=5)
  ended = await harness.engine.end(job.job_id)

  assert ended.status == JobStatus.COMPLETED
  assert ended.translator_id == "T2"
  assert ended.session_time == "01:30:05"
  assert harness.transport.push_events("token-T2") == ["ended"]
  assert harness.transport.push_events("token-C1") == ["ended"]


@pytest.mark.anyio
async def test_completed_job_cannot_be_cancelled(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")
  await harness.engine.end(job.job_id)

  with pytest.raises(InvalidStateError):
    await harness.engine.cancel(job.job_id, CUSTOMER)

  with pytest.raises(InvalidStateError):
    await harness.engine.end(job.job_id)


@pytest.mark.anyio
async def test_customer_not_call_annotates_without_status_change(harness):
  job = await _create(harness)

  with pytest.raises(InvalidStateError):
    await harness.engine.customer_not_call(job.job_id)

  await harness.engine.accept(job.job_id, "T1")
  flagged = await harness.engine.customer_not_call(job.job_id)

  assert flagged.customer_not_call is True
  assert flagged.status == JobStatus.ACCEPTED
  assert flagged.translator_id == "T1"


@pytest.mark.anyio
async def test_reopen_returns_to_created_without_excluded_translator(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")
  await harness.engine.cancel(job.job_id, Actor(actor_id="T2", role=ActorRole.TRANSLATOR))
  harness.transport.clear()

  reopened = await harness.engine.reopen(job.job_id)

  assert reopened.status == JobStatus.CREATED
  assert reopened.candidate_ids == ("T1",)
  assert reopened.offer_round == 1
  assert reopened.translator_id is None
  assert reopened.cancelled_at is None
  assert reopened.offer_dispatched_at is None
  assert harness.transport.push_events("token-C1") == ["reopened"]
  assert harness.transport.push_tokens() == ["token-C1"]


@pytest.mark.anyio
async def test_reopened_job_is_offered_by_assign(harness):
  job = await _create(harness)
  await harness.engine.accept(job.job_id, "T2")
  await harness.engine.cancel(job.job_id, CUSTOMER)
  reopened = await harness.engine.reopen(job.job_id)
  harness.transport.clear()

  with pytest.raises(InvalidStateError):
    await harness.engine.accept(job.job_id, "T1")

  offered = await harness.engine.assign(reopened.job_id)

  assert offered.status == JobStatus.OFFERED
  assert offered.candidate_ids == ("T1", "T2")
  assert offered.offer_round == 2
  assert harness.transport.push_events("token-T1") == ["offer"]
  assert (await harness.engine.accept(job.job_id, "T1")).translator_id == "T1"


@pytest.mark.anyio
async def test_reopen_of_open_job_is_invalid(harness):
  job = await _create(harness)

  with pytest.raises(InvalidStateError):
    await harness.engine.reopen(job.job_id)


@pytest.mark.anyio
async def test_update_details_rematches_on_language_change(harness):
  job = await _create(harness)
  harness.directory.add_translator(make_translator("T3", languages=frozenset({"en", "sv"})))
  harness.transport.clear()

  updated = await harness.engine.update_details(job.job_id, JobUpdate(to_language="sv"), CUSTOMER)

  assert updated.to_language == "sv"
  assert updated.candidate_ids == ("T3",)
  assert updated.offer_round == 2
  assert harness.transport.push_events("token-T3") == ["reoffer"]


@pytest.mark.anyio
async def test_update_details_without_matching_change_keeps_offer(harness):
  job = await _create(harness)
  harness.transport.clear()

  updated = await harness.engine.update_details(job.job_id, JobUpdate(instructions="Use the side entrance"), CUSTOMER)

  assert updated.instructions == "Use the side entrance"
  assert updated.offer_round == 1
  assert harness.transport.pushes == []


@pytest.mark.anyio
async def test_update_details_guards(harness):
  job = await _create(harness)

  with pytest.raises(ForbiddenError):
    await harness.engine.update_details(job.job_id, JobUpdate(duration_minutes=30), Actor(actor_id="C2", role=ActorRole.CUSTOMER))

  with pytest.raises(ValidationError):
    await harness.engine.update_details(job.job_id, JobUpdate(to_language="en"), CUSTOMER)

  await harness.engine.accept(job.job_id, "T1")
  with pytest.raises(InvalidStateError):
    await harness.engine.update_details(job.job_id, JobUpdate(duration_minutes=30), ADMIN)


@pytest.mark.anyio
async def test_transition_survives_a_failing_fan_out(harness):
  job = await _create(harness)
  harness.dispatcher.notify = AsyncMock(side_effect=RuntimeError("directory offline"))

  accepted = await harness.engine.accept(job.job_id, "T1")

  assert accepted.status == JobStatus.ACCEPTED
  stored = await harness.queries.get_job(job.job_id)
  assert stored.translator_id == "T1"


@pytest.mark.anyio
async def test_unknown_job_is_not_found(harness):
  with pytest.raises(NotFoundError):
    await harness.engine.cancel("missing", CUSTOMER)


@pytest.mark.anyio
async def test_immediate_booking_emails_confirmation_to_contact_address(harness):
  job = await _create(harness, immediate=True, user_email=" Anna@Example.com ")

  assert job.user_email == "anna@example.com"
  assert [address for address, _ in harness.transport.emails] == ["anna@example.com"]
  content = harness.transport.emails[0][1]
  assert content.subject == f"Booking received: en > de ({job.job_id})"
  assert content.text.startswith("Hello Customer One,")
  assert harness.transport.push_events("token-C1") == []


@pytest.mark.anyio
async def test_immediate_booking_falls_back_to_profile_email(harness):
  await _create(harness, immediate=True)

  assert [address for address, _ in harness.transport.emails] == ["c1@example.com"]


@pytest.mark.anyio
async def test_scheduled_booking_sends_no_email(harness):
  await _create(harness, user_email="anna@example.com")

  assert harness.transport.emails == []


@pytest.mark.anyio
async def test_failed_confirmation_email_keeps_the_booking(harness):
  harness.transport.failing_addresses.add("anna@example.com")

  job = await _create(harness, immediate=True, user_email="anna@example.com")

  assert job.status == JobStatus.OFFERED
  assert (await harness.job_store.get(job.job_id)).user_email == "anna@example.com"


def test_malformed_contact_email_is_rejected():
  with pytest.raises(ValidationError):
    _spec(user_email="not-an-address")


@pytest.mark.anyio
async def test_record_contact_email_stores_and_confirms(harness):
  job = await _create(harness, immediate=True)
  harness.transport.clear()

  updated = await harness.engine.record_contact_email(job.job_id, "office@example.org", CUSTOMER)

  assert updated.user_email == "office@example.org"
  assert updated.status == JobStatus.OFFERED
  assert [address for address, _ in harness.transport.emails] == ["office@example.org"]


@pytest.mark.anyio
async def test_record_contact_email_rules(harness):
  scheduled = await _create(harness)
  immediate = await _create(harness, immediate=True)

  with pytest.raises(ValidationError):
    await harness.engine.record_contact_email(scheduled.job_id, "office@example.org", CUSTOMER)
  with pytest.raises(ValidationError):
    await harness.engine.record_contact_email(immediate.job_id, "office", CUSTOMER)
  with pytest.raises(ForbiddenError):
    await harness.engine.record_contact_email(immediate.job_id, "office@example.org", Actor(actor_id="C9", role=ActorRole.CUSTOMER))

  await harness.engine.cancel(immediate.job_id, CUSTOMER)
  with pytest.raises(InvalidStateError):
    await harness.engine.record_contact_email(immediate.job_id, "office@example.org", ADMIN)
