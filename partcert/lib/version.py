'''
partcert version information.
'''

def verstr(vtup):
    '''
    Convert a version tuple to a string.
    '''
    return '.'.join([str(v) for v in vtup])

version = (0, 1, 0)
verstring = verstr(version)
commit = ''
