from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Largest value an Integer column holds on PostgreSQL
INT_COLUMN_MAX = 2_147_483_647
