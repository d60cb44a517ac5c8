import logging

# Logging related constants
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s ' \
             '[%(filename)s:%(funcName)s:%(threadName)s:%(processName)s]'
LOG_LEVEL_CHOICES = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}
LOG_LEVEL_INVERSE_CHOICES = {v: k for k, v in LOG_LEVEL_CHOICES.items()}

# Partial certificate defaults
DEFAULT_ISSUER = 'CN=TPM Test Issuer,O=TPM Test Suite'
DEFAULT_SUBJECT = 'CN=TPM X509 CA,O=MSFT'

# X.509 v3 is encoded as version 2
X509_V3 = 2

# UTCTime covers 1950 through 2049, GeneralizedTime everything else
UTCTIME_MINYEAR = 1950
UTCTIME_MAXYEAR = 2049
