import logging
import logging.config

_configured = False


def configure_logging(level='INFO'):
    """Configure the ``wms`` logger once per process (console output)."""
    global _configured
    if _configured:
        logging.getLogger('wms').setLevel(level)
        return
    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'default': {
                'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
            },
        },
        'loggers': {
            'wms': {
                'handlers': ['console'],
                'level': level,
                'propagate': True,
            },
        },
    })
    _configured = True
