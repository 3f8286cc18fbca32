import pytest

from polydoc import MAX_TRANSACTION_RETRIES, run_in_transaction
from polydoc.drivers.exceptions import TransactionError, WriteConflictError
from polydoc.ext.drivers.memory import MemoryDriver


class RecordingDriver(MemoryDriver):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sessions = []

    async def start_session(self):
        session = await super().start_session()
        self.sessions.append(session)
        return session


class FailingWork:
    def __init__(self, failures: list[Exception], result="done"):
        self.failures = failures
        self.result = result
        self.attempts = 0

    async def __call__(self, session):
        self.attempts += 1
        if self.failures:
            raise self.failures.pop(0)

        return self.result


@pytest.fixture
def driver():
    return RecordingDriver.connect()


@pytest.mark.asyncio
async def test_commits_the_work(driver):
    async def work(session):
        return await driver.insert_one("things", {"name": "a"}, session=session)

    id = await run_in_transaction(work, driver=driver)

    assert (await driver.find_one("things", id))["name"] == "a"
    assert all(session.ended for session in driver.sessions)


@pytest.mark.asyncio
async def test_failed_work_is_rolled_back(driver):
    async def work(session):
        await driver.insert_one("things", {"name": "a"}, session=session)
        raise RuntimeError("Boom")

    with pytest.raises(RuntimeError):
        await run_in_transaction(work, driver=driver)

    assert await driver.count("things") == 0
    assert len(driver.sessions) == 1
    assert driver.sessions[0].ended


@pytest.mark.asyncio
async def test_transient_conflicts_are_retried(driver):
    work = FailingWork([WriteConflictError("Conflict"), WriteConflictError("Conflict")])

    assert await run_in_transaction(work, driver=driver) == "done"
    assert work.attempts == 3
    assert len(driver.sessions) == 3
    assert all(session.ended for session in driver.sessions)


@pytest.mark.asyncio
async def test_retries_are_bounded(driver, caplog):
    work = FailingWork([WriteConflictError("Conflict") for _ in range(10)])

    with pytest.raises(WriteConflictError):
        await run_in_transaction(work, driver=driver)

    assert work.attempts == MAX_TRANSACTION_RETRIES + 1
    assert all(session.ended for session in driver.sessions)
    assert sum("Transient transaction conflict" in record.message for record in caplog.records) == MAX_TRANSACTION_RETRIES


@pytest.mark.asyncio
async def test_other_errors_are_not_retried(driver):
    work = FailingWork([ValueError("Bad value")])

    with pytest.raises(ValueError):
        await run_in_transaction(work, driver=driver)

    assert work.attempts == 1
    assert driver.sessions[0].ended


@pytest.mark.asyncio
async def test_a_document_changed_during_the_transaction_is_retried(driver):
    id = await driver.insert_one("things", {"name": "a"})
    attempts = 0

    async def work(session):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            await driver.replace_one("things", id, {"name": "outside"})

        await driver.replace_one("things", id, {"name": f"attempt {attempts}"}, session=session)

    await run_in_transaction(work, driver=driver)

    assert attempts == 2
    assert (await driver.find_one("things", id))["name"] == "attempt 2"


@pytest.mark.asyncio
async def test_joining_a_session_runs_the_work_once_without_committing(driver):
    async with await driver.start_session() as session:
        session.start_transaction()
        work = FailingWork([])

        assert await run_in_transaction(work, driver=driver, session=session) == "done"
        assert session.in_transaction

        await driver.insert_one("things", {"name": "a"}, session=session)
        await run_in_transaction(
            lambda joined: driver.insert_one("things", {"name": "b"}, session=joined), driver=driver, session=session
        )
        assert await driver.count("things") == 0

        await session.commit_transaction()

    assert await driver.count("things") == 2
    assert len(driver.sessions) == 1


@pytest.mark.asyncio
async def test_joined_failures_are_left_to_the_caller(driver):
    async with await driver.start_session() as session:
        session.start_transaction()

        with pytest.raises(WriteConflictError):
            await run_in_transaction(FailingWork([WriteConflictError("Conflict")]), driver=driver, session=session)

        assert session.in_transaction


@pytest.mark.asyncio
async def test_sessions_cannot_start_two_transactions(driver):
    async with await driver.start_session() as session:
        session.start_transaction()

        with pytest.raises(TransactionError):
            session.start_transaction()
