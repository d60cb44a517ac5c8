import json
import logging

import fastjsonschema

import partcert.exc as p_exc

from fastjsonschema.exceptions import JsonSchemaValueException

logger = logging.getLogger(__name__)

# Cache of validator functions
_JsValidators = {}  # type: ignore

def getJsSchema(confdefs, required=()):
    '''
    Generate a JSON Schema for a single config object.

    Args:
        confdefs (dict): A JSON Schema dictionary of properties for the object.
        required (tuple): Property names which must be present.

    Notes:
        This generates a JSON Schema draft 7 schema for a single object, which does not allow for
        additional properties to be set on it.

    Returns:
        dict: A complete JSON schema.
    '''
    schema = {
        '$schema': 'http://json-schema.org/draft-07/schema#',
        'additionalProperties': False,
        'properties': dict(confdefs),
        'required': list(required),
        'type': 'object'
    }
    return schema

def getJsValidator(schema, use_default=True):
    '''
    Get a fastjsonschema callable.

    Args:
        schema (dict): A JSON Schema object.
        use_default (bool): Whether to insert "default" key arguments into the validated data structure.

    Returns:
        callable: A callable function that can be used to validate data against the json schema.
    '''
    if schema.get('$schema') is None:
        schema['$schema'] = 'http://json-schema.org/draft-07/schema#'

    # It is faster to hash and cache the functions here than it is to
    # generate new functions each time we have the same schema.
    key = (json.dumps(schema, sort_keys=True), use_default)
    func = _JsValidators.get(key)
    if func:
        return func

    func = fastjsonschema.compile(schema, use_default=use_default)

    def wrap(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except JsonSchemaValueException as e:
            raise p_exc.SchemaViolation(mesg=e.message, name=e.name) from e

    _JsValidators[key] = wrap
    return wrap
