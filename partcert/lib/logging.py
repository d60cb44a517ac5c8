import json
import logging

import partcert.exc as p_exc
import partcert.common as p_common

import partcert.lib.const as p_const

logger = logging.getLogger(__name__)

_glob_loginfo = {}
def setLogInfo(name, valu):
    '''
    Configure global values which should be added to every log.
    '''
    _glob_loginfo[name] = valu

def getLogExtra(**kwargs):
    '''
    Construct a properly enveloped log extra dictionary.

    NOTE: If the key "exc" is specified, it will be used as
          an exception to generate standardized error info.
    '''
    exc = kwargs.pop('exc', None)
    extra = {'params': kwargs, 'loginfo': {}}

    if exc is not None:
        extra['loginfo']['error'] = p_common.excinfo(exc)

    return extra

class Formatter(logging.Formatter):

    def genLogInfo(self, record):

        record.message = record.getMessage()

        loginfo = {
            'message': record.message,
            'logger': {
                'name': record.name,
                'func': record.funcName,
            },
            'level': record.levelname,
            'time': self.formatTime(record, self.datefmt),
        }

        loginfo.update(_glob_loginfo)

        if hasattr(record, 'loginfo'):
            loginfo.update(record.loginfo)

        if record.exc_info:
            loginfo['error'] = p_common.excinfo(record.exc_info[1])

        if not hasattr(record, 'params'):
            record.params = {}

        loginfo['params'] = record.params

        return loginfo

    def format(self, record):
        loginfo = self.genLogInfo(record)
        return json.dumps(loginfo, default=str)

class TextFormatter(Formatter):

    def __init__(self, *args, **kwargs):
        kwargs['fmt'] = p_const.LOG_FORMAT
        return super().__init__(*args, **kwargs)

    def format(self, record):
        self.genLogInfo(record)
        return logging.Formatter.format(self, record)

_glob_logconf = {}
def setup(**conf):
    '''
    Configure partcert logging.

    Args:
        level (str|int): The log level. Defaults to WARNING.
        structlog (bool): Emit JSON lines instead of text. Defaults to False.
        datefmt (str): An optional date format for log timestamps.
        loginfo (dict): Values added to every structured log line.

    Returns:
        dict: The normalized logging configuration.
    '''
    if conf.get('level') is None:
        conf['level'] = logging.WARNING

    if conf.get('structlog') is None:
        conf['structlog'] = False

    fmtclass = Formatter
    if not conf.get('structlog'):
        fmtclass = TextFormatter

    loginfo = conf.pop('loginfo', None)
    if loginfo is not None:
        _glob_loginfo.update(loginfo)

    handler = logging.StreamHandler()
    handler.setFormatter(fmtclass(datefmt=conf.get('datefmt')))

    level = normLogLevel(conf.get('level'))
    conf['level'] = level

    _glob_logconf.clear()
    _glob_logconf.update(conf)

    logging.basicConfig(level=level, handlers=(handler,), force=True)

    logger.info('log level set to %s', p_const.LOG_LEVEL_INVERSE_CHOICES.get(level))

    return conf

def getLogConf():
    logconf = _glob_logconf.copy()
    logconf['loginfo'] = _glob_loginfo.copy()
    return logconf

def normLogLevel(valu):
    '''
    Normalize a log level value to an integer.

    Args:
        valu: The value to norm ( a string or integer ).

    Returns:
        int: A valid log level integer.
    '''
    if isinstance(valu, str):

        valu = valu.strip()
        level = p_const.LOG_LEVEL_CHOICES.get(valu.upper())
        if level is not None:
            return level

        try:
            valu = int(valu)
        except ValueError:
            raise p_exc.BadArg(mesg=f'Invalid log level provided: {valu}', valu=valu) from None

    if isinstance(valu, int):

        if valu not in p_const.LOG_LEVEL_INVERSE_CHOICES:
            raise p_exc.BadArg(mesg=f'Invalid log level provided: {valu}', valu=valu)

        return valu

    raise p_exc.BadArg(mesg=f'Unknown log level type: {type(valu)} {valu}', valu=valu)
