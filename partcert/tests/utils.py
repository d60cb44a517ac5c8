'''
This contains the core test helper code used in partcert.

The core class, partcert.tests.utils.SynTest is a subclass of unittest.TestCase,
with several wrapper functions to allow for easier calls to assert* functions,
with less typing. There are also helpers to generate keys and partial
certificates for certification tests.

Since SynTest is built from unittest.TestCase, the use of SynTest is
compatible with the unittest and pytest frameworks.
'''
import io
import json
import typing
import logging
import datetime
import unittest
import threading
import contextlib

import cryptography.hazmat.primitives.asymmetric.ec as c_ec
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa

import partcert.lib.algs as p_algs
import partcert.lib.partial as p_partial
import partcert.lib.keyusage as p_keyusage

def norm(z):
    if isinstance(z, (list, tuple)):
        return tuple([norm(n) for n in z])
    if isinstance(z, dict):
        return {norm(k): norm(v) for (k, v) in z.items()}
    return z

def jsonlines(text: str):
    lines = [k for k in text.split('\n') if k]
    return [json.loads(line) for line in lines]

class StreamEvent(io.StringIO, threading.Event):
    '''
    A combination of a io.StringIO object and a threading.Event object.
    '''
    def __init__(self, *args, **kwargs):
        io.StringIO.__init__(self, *args, **kwargs)
        threading.Event.__init__(self)
        self.mesg = ''

    def setMesg(self, mesg):
        '''
        Clear the internal event and set a new message that is used to set the event.

        Args:
            mesg (str): The string to monitor for.

        Returns:
            None
        '''
        self.mesg = mesg
        self.clear()

    def write(self, s):
        io.StringIO.write(self, s)
        if self.mesg and self.mesg in s:
            self.set()

    def jsonlines(self) -> typing.List[dict]:
        '''Get the messages as jsonlines. May throw Json errors if the captured stream is not jsonlines.'''
        return jsonlines(self.getvalue())

class SynTest(unittest.TestCase):

    def genKey(self, keytype):
        '''
        Generate a cryptography private key for a TpmAlg key type.
        '''
        if keytype == p_algs.TpmAlg.ECC:
            return c_ec.generate_private_key(c_ec.SECP256R1())
        return c_rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def getPartialConf(self, **kwargs) -> p_partial.PartialCertConf:
        '''
        Get PartialCertConf options for a signing key, with overrides.
        '''
        kwargs.setdefault('keyattrs', p_keyusage.KeyAttr.SIGN)
        kwargs.setdefault('notbefore', datetime.datetime(2020, 1, 1, tzinfo=datetime.UTC))
        kwargs.setdefault('notafter', datetime.datetime(2040, 1, 1, tzinfo=datetime.UTC))
        return p_partial.PartialCertConf(**kwargs)

    @contextlib.contextmanager
    def getLoggerStream(self, logname, mesg=''):
        '''
        Get a logger and attach a io.StringIO object to the logger to capture log messages.

        Args:
            logname (str): Name of the logger to get.
            mesg (str): A string which, if provided, sets the StreamEvent event if a message
            containing the string is written to the log.

        Examples:
            Do an action and get the stream of log messages to check against::

                with self.getLoggerStream('partcert.lib.assemble') as stream:
                    # Do something that triggers a log message
                    doSomething()

                stream.seek(0)
                mesgs = stream.read()
                # Do something with messages

        Yields:
            StreamEvent: A StreamEvent object
        '''
        stream = StreamEvent()
        stream.setMesg(mesg)
        handler = logging.StreamHandler(stream)
        slogger = logging.getLogger(logname)
        slogger.addHandler(handler)
        level = slogger.level
        slogger.setLevel('DEBUG')
        try:
            yield stream
        finally:
            slogger.removeHandler(handler)
            slogger.setLevel(level)

    def eq(self, x, y, msg=None):
        '''
        Assert X is equal to Y
        '''
        self.assertEqual(norm(x), norm(y), msg=msg)

    def ne(self, x, y):
        '''
        Assert X is not equal to Y
        '''
        self.assertNotEqual(norm(x), norm(y))

    def true(self, x, msg=None):
        '''
        Assert X is True
        '''
        self.assertTrue(x, msg=msg)

    def false(self, x, msg=None):
        '''
        Assert X is False
        '''
        self.assertFalse(x, msg=msg)

    def nn(self, x, msg=None):
        '''
        Assert X is not None
        '''
        self.assertIsNotNone(x, msg=msg)
        return x

    def none(self, x, msg=None):
        '''
        Assert X is None
        '''
        self.assertIsNone(x, msg=msg)

    def raises(self, *args, **kwargs):
        '''
        Assert a function raises an exception.
        '''
        return self.assertRaises(*args, **kwargs)

    def sorteq(self, x, y, msg=None):
        '''
        Assert two sorted sequences are the same.
        '''
        return self.eq(sorted(x), sorted(y), msg=msg)

    def isinstance(self, obj, cls, msg=None):
        '''
        Assert a object is the instance of a given class or tuple of classes.
        '''
        self.assertIsInstance(obj, cls, msg=msg)

    def isin(self, member, container, msg=None):
        '''
        Assert a member is inside of a container.
        '''
        self.assertIn(member, container, msg=msg)

    def notin(self, member, container, msg=None):
        '''
        Assert a member is not inside of a container.
        '''
        self.assertNotIn(member, container, msg=msg)

    def gt(self, x, y, msg=None):
        '''
        Assert that X is greater than Y
        '''
        self.assertGreater(x, y, msg=msg)

    def len(self, x, obj, msg=None):
        '''
        Assert that the length of an object is equal to X
        '''
        self.eq(x, len(obj), msg=msg)
