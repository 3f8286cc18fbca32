from polydoc.repository.repository import BatchRepository, Repository
from polydoc.repository.document_repository import DocumentRepository, FilterValidation
from polydoc.repository.transactional_repository import TransactionalRepository


__all__ = ["BatchRepository", "DocumentRepository", "FilterValidation", "Repository", "TransactionalRepository"]
