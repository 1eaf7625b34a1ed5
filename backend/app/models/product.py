from sqlalchemy import Column, DateTime, Integer, String, Text
from app.db import Base

class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True)
    position = Column(Integer, nullable=False, default=0)  # collection order
    name = Column(String(256), nullable=False)
    sku = Column(String(64), nullable=True, index=True)
    category = Column(String(128), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)
    min_stock = Column(Integer, default=5, nullable=False)
    description = Column(Text, nullable=True)
    last_modified = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Product id={self.id} name={self.name} qty={self.quantity}>"
