"""File names inside PGDATA."""

POSTGRESQL_CONF = 'postgresql.conf'
CUSTOM_CONF = 'custom.conf'
AUTO_CONF = 'postgresql.auto.conf'
HBA_CONF = 'pg_hba.conf'
IDENT_CONF = 'pg_ident.conf'
RECOVERY_SIGNAL = 'recovery.signal'
RECOVERY_CONF = 'recovery.conf'

# First major version using recovery.signal instead of recovery.conf
SIGNAL_FILE_MAJOR_VERSION = 12

SUPERUSER = 'postgres'

CERTIFICATES_DIR = '/controller/certificates'

# Written by pg_ctl start inside PGDATA unless a log directory is configured
PG_CTL_LOG = 'pg_ctl.log'
