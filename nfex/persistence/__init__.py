from nfex.persistence.unit_of_work import UnitOfWork, WriteIntent

__all__ = ['UnitOfWork', 'WriteIntent']
