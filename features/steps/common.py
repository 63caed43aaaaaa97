import typing

from behave import given, then, use_step_matcher

from stacks_sdk.address import StacksAddress

# Use regular expressions
use_step_matcher("re")


@given(r"(?P<input_type>[a-zA-Z0-9]+) (?P<input_value>\S+)")
def given_input(context: typing.Any, input_type: str, input_value: str):
    if input_type == "bool":
        context.input = parse_bool(input_value)
    elif input_type in ("u8", "u32", "u64", "u128", "uint", "int"):
        context.input = int(input_value)
    elif input_type == "address":
        context.input = input_value
    elif input_type == "bytes":
        context.input = parse_hex(input_value)
    elif input_type == "string":
        context.input = parse_string(input_value)
    else:
        raise Exception("Unrecognized input type")


@then(r"the result should be (?P<expected_type>[a-zA-Z0-9]+) (?P<expected_value>\S+)")
def then_result(context: typing.Any, expected_type: str, expected_value: str):
    expected_val: typing.Any = expected_value
    if expected_type == "bool":
        expected_val = parse_bool(expected_value)
    elif expected_type == "address":
        expected_val = StacksAddress.from_str(expected_value)
    elif expected_type == "bytes":
        expected_val = parse_hex(expected_value)
    elif expected_type == "string":
        expected_val = parse_string(expected_value)
    elif expected_type in ("u8", "u32", "u64", "u128"):
        expected_val = int(expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_value) + " but got " + str(context.output)
    )


@then(r"the operation should fail with (?P<error_type>[a-zA-Z]+)")
def then_fail(context: typing.Any, error_type: str):
    assert isinstance(context.output, Exception), (
        "Expected " + error_type + " but got " + str(context.output)
    )
    assert type(context.output).__name__ == error_type, (
        "Expected " + error_type + " but got " + repr(context.output)
    )


def parse_hex(input_value: str):
    return bytes.fromhex(input_value.removeprefix("0x"))


def parse_bool(input_value: str):
    return input_value == "true"


def parse_string(input_value: str):
    return input_value.removeprefix('"').removesuffix('"')
