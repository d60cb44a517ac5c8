'''
Exceptions used by partcert, all inheriting from PartErr
'''

class PartErr(Exception):

    def __init__(self, *args, **info):
        self.errinfo = info
        self.errname = self.__class__.__name__
        Exception.__init__(self, self._getExcMsg())

    def _getExcMsg(self):
        props = sorted(self.errinfo.items())
        displ = ' '.join(['%s=%r' % (p, v) for (p, v) in props])
        return '%s: %s' % (self.__class__.__name__, displ)

    def _setExcMesg(self):
        '''Should be called when self.errinfo is modified.'''
        self.args = (self._getExcMsg(),)

    def __setstate__(self, state):
        '''Pickle support.'''
        super(PartErr, self).__setstate__(state)
        self._setExcMesg()

    def items(self):
        return {k: v for k, v in self.errinfo.items()}

    def get(self, name, defv=None):
        '''
        Return a value from the errinfo dict.

        Example:

            try:
                addedto = AddedTo.load(byts)
            except BadAsn1Bytes as e:
                field = e.get('field')

        '''
        return self.errinfo.get(name, defv)

    def set(self, name, valu):
        '''
        Set a value in the errinfo dict.
        '''
        self.errinfo[name] = valu
        self._setExcMesg()

    def setdefault(self, name, valu):
        '''
        Set a value in errinfo dict if it is not already set.
        '''
        if name in self.errinfo:
            return
        self.errinfo[name] = valu
        self._setExcMesg()

    def update(self, items: dict):
        '''Update multiple items in the errinfo dict at once.'''
        self.errinfo.update(items)
        self._setExcMesg()

class BadArg(PartErr):
    ''' Improper function arguments '''
    pass

class BadAsn1Bytes(PartErr):
    '''
    DER bytes could not be decoded into the expected structure.

    This should contain the structure name and, where known, the field.
    '''
    pass

class BadAsn1Item(PartErr):
    '''
    A structure could not be DER encoded.

    This represents a contract violation between the caller and the device.
    '''
    pass

class BadCertParts(PartErr):
    '''
    The partial certificate and the added-to structure can not be combined.
    '''
    pass

class BadCertVerify(PartErr):
    '''
    A certificate signature did not verify.
    '''
    pass

class CertMismatch(PartErr):
    '''
    Two certificates which should be byte-identical differ.
    '''
    pass

class NoSuchAlgo(PartErr):
    '''
    The requested algorithm combination is not supported.
    '''
    pass

class NoSuchImpl(PartErr): pass

class SchemaViolation(PartErr): pass
