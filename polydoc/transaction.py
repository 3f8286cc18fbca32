"""
Runs units of work inside database transactions.

`run_in_transaction` opens a session, starts a transaction, runs the work with that session and commits. When the
work or the commit fails the transaction is aborted. Failures the driver classifies as transient transaction
conflicts are retried with a fresh session and transaction, at most `MAX_TRANSACTION_RETRIES` times. Every other
failure, and a conflict that outlasts the retries, is raised unchanged. The session is ended on every path.

When a session is passed in, the work joins the caller's transaction. It is run once with that session and is never
committed, aborted or retried here, the caller owning the session is responsible for that.

Example:
    ```python
    async def transfer(session):
        await accounts.save({"id": source_id, "balance": 0}, session=session)
        await accounts.save({"id": target_id, "balance": 100}, session=session)

    await run_in_transaction(transfer, driver=driver)
    ```
"""
import logging
from typing import Awaitable, Callable

from polydoc.drivers import BaseDriver, BaseDriverSession


logger = logging.getLogger(__name__)

MAX_TRANSACTION_RETRIES = 3

type TransactionWork[R] = Callable[[BaseDriverSession], Awaitable[R]]


async def run_in_transaction[R](
    work: TransactionWork[R], *, driver: BaseDriver, session: BaseDriverSession | None = None
) -> R:
    if session is not None:
        return await work(session)

    attempt = 0
    while True:
        attempt += 1
        async with await driver.start_session() as transaction_session:
            transaction_session.start_transaction()
            logger.debug("Started transaction (attempt %d)", attempt)
            try:
                result = await work(transaction_session)
                await transaction_session.commit_transaction()

            except Exception as error:
                if transaction_session.in_transaction:
                    await _abort(transaction_session)

                if attempt <= MAX_TRANSACTION_RETRIES and driver.is_transient_conflict(error):
                    logger.warning(
                        "Transient transaction conflict on attempt %d of %d, retrying: %s",
                        attempt,
                        MAX_TRANSACTION_RETRIES + 1,
                        error,
                    )
                    continue

                raise

            logger.debug("Committed transaction (attempt %d)", attempt)
            return result


async def _abort(session: BaseDriverSession):
    try:
        await session.abort_transaction()

    except Exception as abort_error:
        # The original failure is raised by the caller
        logger.warning("Failed to abort the transaction: %s", abort_error)

    else:
        logger.debug("Aborted transaction")
