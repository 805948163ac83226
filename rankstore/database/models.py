from sqlalchemy import Column, DateTime, LargeBinary, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

class RankStoreRecord(Base):
    __tablename__ = 'rank_store_records'
    
    key = Column(String(255), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    
    # Metadata
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<RankStoreRecord(key='{self.key}', bytes={len(self.value or b'')})>"
