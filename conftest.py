import os
import tempfile

import pytest


def pytest_configure(config):
    from django.conf import settings

    # Run Celery tasks in-process during tests. The app reads Django settings
    # under the CELERY_ namespace, and those take precedence over changes made
    # through app.conf, so eager mode has to be switched on here.
    settings.CELERY_TASK_ALWAYS_EAGER = True


@pytest.fixture(scope='session')
def django_db_modify_db_settings(django_db_modify_db_settings_parallel_suffix):
    # Use an on-disk SQLite test database: the default shared-cache in-memory
    # database raises "table is locked" immediately instead of honouring the
    # BEGIN IMMEDIATE write lock and busy timeout the ledger relies on.
    from django.db import connections

    default = connections.settings['default']
    if default['ENGINE'] == 'django.db.backends.sqlite3' and not default['TEST'].get('NAME'):
        default['TEST']['NAME'] = os.path.join(tempfile.gettempdir(), 'lendingsystem_test.sqlite3')
