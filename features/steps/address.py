from behave import then, use_step_matcher, when

from stacks_sdk import c32
from stacks_sdk.address import StacksAddress
from stacks_sdk.serialization import Serializer

# Use regular expressions
use_step_matcher("re")


@when("I parse the address")
def when_parse_address(context):
    try:
        context.output = StacksAddress.from_str(context.input)
    except Exception as e:
        context.output = e


@when(r"I encode the hash as a c32 address with version (?P<version>\d+)")
def when_encode_c32_address(context, version: str):
    context.output = c32.c32address(int(version), context.input)


@when("I read the address hash")
def when_read_address_hash(context):
    context.output = StacksAddress.from_str(context.input).hash160


@when("I serialize the address")
def when_serialize_address(context):
    ser = Serializer()
    StacksAddress.from_str(context.input).serialize(ser)
    context.output = ser.output()


@then(r"the address version should be (?P<version>\d+)")
def then_address_version(context, version: str):
    assert context.output.version == int(version), (
        "Expected version " + version + " but got " + str(context.output.version)
    )
