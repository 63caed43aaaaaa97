from behave import then, use_step_matcher, when

from stacks_sdk.clarity import (
    BoolCV,
    BufferCV,
    ClarityValue,
    IntCV,
    NoneCV,
    StringAsciiCV,
    StringUtf8CV,
    UIntCV,
    principal_cv,
)

# Use regular expressions
use_step_matcher("re")

CONSTRUCTORS = {
    "uint": UIntCV,
    "int": IntCV,
    "bool": BoolCV,
    "buffer": BufferCV,
    "ascii": StringAsciiCV,
    "utf8": StringUtf8CV,
    "principal": principal_cv,
}


@when(r"I serialize the value as clarity (?P<clarity_type>[a-z0-9]+)")
def when_serialize_clarity(context, clarity_type: str):
    try:
        context.output = CONSTRUCTORS[clarity_type](context.input).to_bytes()
    except Exception as e:
        context.output = e


@when("I serialize clarity none")
def when_serialize_none(context):
    context.output = NoneCV().to_bytes()


@when("I deserialize the clarity value")
def when_deserialize_clarity(context):
    try:
        context.output = ClarityValue.from_bytes(context.input)
    except Exception as e:
        context.output = e


@then(r"the clarity type should be (?P<type_string>.+)")
def then_clarity_type(context, type_string: str):
    assert context.output.type_string() == type_string, (
        "Expected " + type_string + " but got " + context.output.type_string()
    )


@then(r"the clarity value should be (?P<value>\S+)")
def then_clarity_value(context, value: str):
    assert str(context.output.to_value()) == value, (
        "Expected " + value + " but got " + str(context.output.to_value())
    )
