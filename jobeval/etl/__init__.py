"""Offline pipeline that builds the occupation database and title index from BLS and O*NET releases."""
