# API v1 Package
from sitebooks.api.v1 import (
    auth, users, projects, banking, contractors, machines, vendors,
    employees, expenses, consumables, non_consumables, reports
)

__all__ = [
    'auth',
    'users',
    'projects',
    'banking',
    'contractors',
    'machines',
    'vendors',
    'employees',
    'expenses',
    'consumables',
    'non_consumables',
    'reports',
]
