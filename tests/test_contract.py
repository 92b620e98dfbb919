"""Tests for inbound and outbound contracts."""

from __future__ import annotations

import numbers

import pytest

from budaction import Action, DuplicateFieldError, InboundValidationError, OutboundValidationError, expects, exposes
from budaction.commons.constants import Direction
from budaction.commons.exceptions import PreprocessingError, ReservedAttributeError, UnknownExposure
from budaction.core.callables import method_ref
from budaction.core.validators import ValidationErrors, build_validators, humanize, is_blank_value


class User:
    """Minimal model with a ``find`` finder."""

    def __init__(self, id: int) -> None:
        self.id = id

    @classmethod
    def find(cls, id: int) -> User | None:
        return cls(id) if id == 1 else None


class TestInboundValidation:
    """Tests for validation of expected inputs."""

    def test_numericality_failure_message(self) -> None:
        """A numericality failure produces a humanized full message."""

        class CheckFoo(Action):
            foo = expects(type=numbers.Number, numericality={"greater_than": 10})

        result = CheckFoo.call(foo=9)

        assert result.ok is False
        assert isinstance(result.exception, InboundValidationError)
        assert result.exception.message == "Foo must be greater than 10"
        assert result.error == "Something went wrong"

    def test_valid_inputs_are_readable(self) -> None:
        """Declared inputs are available as attributes inside the body."""

        class Greet(Action):
            name = expects(type=str)
            greeting = exposes()

            def execute(self) -> None:
                self.expose(greeting=f"Hello {self.name}")

        result = Greet.call(name="World")

        assert result.ok
        assert result.greeting == "Hello World"

    def test_missing_input_fails_presence(self) -> None:
        """Fields are required unless blanks or nils are allowed."""

        class NeedsName(Action):
            name = expects()

        result = NeedsName.call()

        assert result.exception.errors.to_dict() == {"name": ["can't be blank"]}
        assert str(result.exception) == "Name can't be blank"

    def test_errors_are_collected_for_all_fields(self) -> None:
        """Validation is not fail-fast across fields."""

        class TwoFields(Action):
            first = expects(type=int)
            second = expects(type=str)

        result = TwoFields.call(first="x", second=1)

        assert result.exception.message == "First is not a int and Second is not a str"

    def test_bool_does_not_satisfy_int(self) -> None:
        """True is not accepted where an integer is expected."""

        class Count(Action):
            count = expects(type=int)

        assert Count.call(count=3).ok
        assert not Count.call(count=True).ok

    def test_allow_nil_skips_validation(self) -> None:
        """None is accepted with allow_nil, other values are still validated."""

        class OptionalNote(Action):
            note = expects(type=str, allow_nil=True)

        assert OptionalNote.call().ok
        assert OptionalNote.call(note=None).ok
        assert not OptionalNote.call(note=3).ok

    def test_allow_blank_accepts_whitespace(self) -> None:
        """Blank strings are accepted with allow_blank."""

        class OptionalNote(Action):
            note = expects(type=str, allow_blank=True)

        assert OptionalNote.call(note="   ").ok

    def test_boolean_false_is_present(self) -> None:
        """False is a valid boolean value while a missing value is not."""

        class Flag(Action):
            enabled = expects(type="boolean")

        assert Flag.call(enabled=False).ok

        result = Flag.call()
        assert result.exception.errors["enabled"] == ["is not a boolean"]

    def test_explicit_false_does_not_use_default(self) -> None:
        """An explicitly passed False is kept and the default is never evaluated."""
        calls: list[int] = []

        def default() -> bool:
            calls.append(1)
            return True

        class Flag(Action):
            enabled = expects(type="boolean", default=default)
            seen = exposes(type="boolean")

            def execute(self) -> None:
                self.expose(seen=self.enabled)

        result = Flag.call(enabled=False)

        assert result.ok
        assert result.seen is False
        assert calls == []

        assert Flag.call().seen is True
        assert calls == [1]

    def test_default_applied_for_missing_and_none(self) -> None:
        """Defaults apply when the value is absent or None."""

        class Paged(Action):
            page = expects(type=int, default=1)
            current = exposes()

            def execute(self) -> None:
                self.expose(current=self.page)

        assert Paged.call().current == 1
        assert Paged.call(page=None).current == 1
        assert Paged.call(page=3).current == 3

    def test_mutable_default_is_copied(self) -> None:
        """Mutable literal defaults are not shared between runs."""

        class Collect(Action):
            items = expects(type=list, default=[], allow_blank=True)

            def execute(self) -> None:
                self.items.append("x")

        Collect.call()
        Collect.call()

        assert Collect._contract.get("items").default == []

    def test_method_ref_default(self) -> None:
        """A method_ref default is computed by the running action."""

        class Salute(Action):
            name = expects(default=method_ref("fallback_name"))
            text = exposes()

            def fallback_name(self) -> str:
                return "friend"

            def execute(self) -> None:
                self.expose(text=f"hi {self.name}")

        assert Salute.call().text == "hi friend"

    def test_preprocess(self) -> None:
        """Preprocess transforms the value before validation."""

        class Normalize(Action):
            email = expects(type=str, preprocess=lambda v: v.strip().lower())
            normalized = exposes()

            def execute(self) -> None:
                self.expose(normalized=self.email)

        assert Normalize.call(email="  A@B.COM ").normalized == "a@b.com"

    def test_preprocess_error(self) -> None:
        """A raising preprocess is reported as a PreprocessingError."""

        class Broken(Action):
            count = expects(preprocess=int)

        result = Broken.call(count="abc")

        assert isinstance(result.exception, PreprocessingError)
        assert result.exception.message.startswith("Error preprocessing field 'count':")

    def test_inputs_are_not_mutated(self) -> None:
        """The caller's mapping is left untouched by preprocessing and defaults."""
        provided = {"email": " X@Y.Z "}

        class Normalize(Action):
            email = expects(preprocess=str.strip)
            region = expects(default="eu")

        assert Normalize.run(provided).ok
        assert provided == {"email": " X@Y.Z "}

    def test_inputs_are_read_only(self) -> None:
        """Assigning to an input from the body is an error."""

        class Mutator(Action):
            name = expects()

            def execute(self) -> None:
                self.name = "changed"

        result = Mutator.call(name="a")

        assert isinstance(result.exception, AttributeError)
        assert "read-only" in str(result.exception)


class TestValidators:
    """Tests for individual validators."""

    def test_length(self) -> None:
        """Length bounds produce ActiveModel style messages."""

        class Code(Action):
            code = expects(type=str, length={"minimum": 3, "maximum": 5})

        assert Code.call(code="abcd").ok
        assert Code.call(code="ab").exception.message == "Code is too short (minimum is 3 characters)"
        assert Code.call(code="abcdef").exception.message == "Code is too long (maximum is 5 characters)"

    def test_inclusion_and_exclusion(self) -> None:
        """Inclusion and exclusion accept a bare collection."""

        class Pick(Action):
            color = expects(inclusion=["red", "blue"], exclusion=["blue"])

        assert Pick.call(color="red").ok
        assert Pick.call(color="green").exception.errors["color"] == ["is not included in the list"]
        assert Pick.call(color="blue").exception.errors["color"] == ["is reserved"]

    def test_format(self) -> None:
        """Format matches a regular expression."""

        class Contact(Action):
            email = expects(format=r"\A[^@\s]+@[^@\s]+\Z")

        assert Contact.call(email="a@b.c").ok
        assert Contact.call(email="nope").exception.message == "Email is invalid"

    def test_numericality_parses_strings(self) -> None:
        """Numeric strings are accepted and other values are not numbers."""

        class Amount(Action):
            amount = expects(numericality={"greater_than_or_equal_to": 0, "only_integer": True})

        assert Amount.call(amount="12").ok
        assert Amount.call(amount="abc").exception.errors["amount"] == ["is not a number"]
        assert Amount.call(amount=1.5).exception.errors["amount"] == ["must be an integer"]

    def test_custom_validation_message(self) -> None:
        """A custom validator returns the error message or None."""

        class Even(Action):
            n = expects(validate=lambda v: None if v % 2 == 0 else "must be even")

        assert Even.call(n=2).ok
        assert Even.call(n=3).exception.message == "N must be even"

    def test_custom_validation_error(self, log_messages) -> None:
        """A raising custom validator fails the field and logs a piping error."""

        class Explodes(Action):
            n = expects(validate=lambda v: 1 / 0)

        result = Explodes.call(n=1)

        assert result.exception.errors["n"] == ["failed validation: division by zero"]
        assert any("APPLYING CUSTOM VALIDATION" in message for message in log_messages("warning"))

    def test_uuid_tag(self) -> None:
        """The uuid type tag checks the string format."""

        class Lookup(Action):
            token = expects(type="uuid")

        assert Lookup.call(token="0d8e3a9e-4d4c-4b8a-9a5e-1c2b3d4e5f60").ok
        assert Lookup.call(token="not-a-uuid").exception.errors["token"] == ["is not a uuid"]

    def test_model_lookup(self) -> None:
        """Model validation looks the record up and exposes a reader without the _id suffix."""

        class LoadUser(Action):
            user_id = expects(model=User)
            loaded = exposes()

            def execute(self) -> None:
                self.expose(loaded=self.user)

        result = LoadUser.call(user_id=1)
        assert result.loaded.id == 1

        missing = LoadUser.call(user_id=2)
        assert missing.exception.errors["user_id"] == ["not found for class User and ID 2"]
        assert missing.exception.message == "User not found for class User and ID 2"

    def test_build_validators_implies_presence_first(self) -> None:
        """Presence is inserted ahead of the declared validators."""
        validators = build_validators("name", {"type": str}, allow_blank=False, allow_nil=False)

        assert [name for name, _ in validators] == ["presence", "type"]

    def test_blank_values(self) -> None:
        """False and 0 are present values."""
        assert is_blank_value(None)
        assert is_blank_value("  ")
        assert is_blank_value([])
        assert not is_blank_value(False)
        assert not is_blank_value(0)

    def test_humanize(self) -> None:
        assert humanize("user_id") == "User"
        assert humanize("first_name") == "First name"

    def test_validation_errors_collection(self) -> None:
        """ValidationErrors keeps messages per field in insertion order."""
        errors = ValidationErrors()
        errors.add("name", "can't be blank")
        errors.add("age", "is not a number")

        assert len(errors) == 2
        assert errors.full_messages() == ["Name can't be blank", "Age is not a number"]
        assert errors["missing"] == []


class TestSubfields:
    """Tests for validation of values nested inside an expected field."""

    def test_subfield_validation(self) -> None:
        """Subfields are validated inside the parent value and readable as attributes."""

        class Subscribe(Action):
            params = expects(type=dict)
            email = expects(on="params", format=r"@")
            plan = expects(on="params", path="plan.name", inclusion=["free", "pro"])
            chosen = exposes()

            def execute(self) -> None:
                self.expose(chosen=f"{self.email}:{self.plan}")

        result = Subscribe.call(params={"email": "a@b.c", "plan": {"name": "pro"}})
        assert result.chosen == "a@b.c:pro"

        bad = Subscribe.call(params={"email": "nope", "plan": {"name": "gold"}})
        assert bad.exception.errors.to_dict() == {
            "email": ["is invalid"],
            "plan.name": ["is not included in the list"],
        }

    def test_subfield_default(self) -> None:
        """Subfield defaults are written into a copy of the parent mapping."""
        provided = {"settings": {}}

        class Configure(Action):
            settings = expects(type=dict, allow_blank=True)
            theme = expects(on="settings", default="dark")
            applied = exposes()

            def execute(self) -> None:
                self.expose(applied=self.theme)

        assert Configure.run(provided).applied == "dark"
        assert provided == {"settings": {}}

    def test_subfield_requires_parent(self) -> None:
        with pytest.raises(ValueError, match="without a corresponding expects"):

            class Orphan(Action):
                email = expects(on="params")


class TestOutbound:
    """Tests for validation of exposed outputs."""

    def test_missing_required_output_fails(self) -> None:
        class Forgetful(Action):
            value = exposes()

        result = Forgetful.call()

        assert isinstance(result.exception, OutboundValidationError)
        assert result.exception.message == "Value can't be blank"

    def test_outbound_default(self) -> None:
        class Defaults(Action):
            status = exposes(default="pending")

        assert Defaults.call().status == "pending"

    def test_expose_positional_form(self) -> None:
        """expose accepts a key and a value as well as keyword arguments."""

        class Positional(Action):
            value = exposes()

            def execute(self) -> None:
                self.expose("value", 42)

        assert Positional.call().value == 42

    def test_unknown_exposure(self) -> None:
        class Leaky(Action):
            def execute(self) -> None:
                self.expose(secret=1)

        result = Leaky.call()

        assert isinstance(result.exception, UnknownExposure)
        assert "Attempted to expose unknown key 'secret'" in result.exception.message


class TestDeclarationErrors:
    """Tests for errors raised when an action class is defined."""

    def test_duplicate_field_in_class_body(self) -> None:
        with pytest.raises(DuplicateFieldError, match=r"Duplicate field\(s\) declared: name"):

            class Twice(Action):
                name = expects()
                name = expects()  # noqa: F811

    def test_duplicate_inherited_field(self) -> None:
        class Parent(Action):
            name = expects()

        with pytest.raises(DuplicateFieldError):

            class Child(Parent):
                name = exposes()

    def test_reserved_name(self) -> None:
        with pytest.raises(ReservedAttributeError, match="reserved field name: success"):

            class Reserved(Action):
                success = expects()

    def test_model_requires_id_suffix(self) -> None:
        with pytest.raises(ValueError, match="field ending in _id"):

            class BadModel(Action):
                user = expects(model=User)

    def test_unknown_validator(self) -> None:
        with pytest.raises(ValueError, match="Unknown validator"):

            class Unknown(Action):
                name = expects(bogus=True)

    def test_path_requires_on(self) -> None:
        with pytest.raises(ValueError, match="path: requires on:"):
            expects(path="a.b")

    def test_subclass_contract_extends_parent(self) -> None:
        """A subclass sees its parent's fields while the parent is unchanged."""

        class Parent(Action):
            name = expects()

        class Child(Parent):
            age = expects(type=int)

        assert [spec.name for spec in Parent._contract.inbound] == ["name"]
        assert [spec.name for spec in Child._contract.inbound] == ["name", "age"]


class TestRepeatedValidation:
    """Tests that validating the same inputs twice gives the same outcome."""

    @staticmethod
    def _action() -> type[Action]:
        class Tagged(Action):
            name = expects(type=str, preprocess=str.strip)
            tags = expects(type=list, default=["core"])
            tag_count = exposes()

            def execute(self) -> None:
                self.tags.append("extra")
                self.expose(tag_count=len(self.tags))

        return Tagged

    def test_contract_validate_twice(self) -> None:
        """Coerced values match, defaults are fresh copies and the input map is untouched."""
        Tagged = self._action()
        contract = Tagged._contract
        raw = {"name": "  Ann "}

        first, first_errors = contract.validate(raw, Direction.INBOUND)
        second, second_errors = contract.validate(raw, Direction.INBOUND)

        assert first == second == {"name": "Ann", "tags": ["core"]}
        assert first["tags"] is not second["tags"]
        assert not first_errors
        assert not second_errors
        assert raw == {"name": "  Ann "}
        assert Tagged._contract is contract

    def test_call_twice_with_same_inputs(self) -> None:
        """A body mutating a defaulted value does not leak into the next run."""
        Tagged = self._action()
        contract = Tagged._contract
        inputs = {"name": "  Ann "}

        first = Tagged.run(inputs)
        second = Tagged.run(inputs)

        assert first.ok and second.ok
        assert first.tag_count == second.tag_count == 2
        assert first.action.name == second.action.name == "Ann"
        assert inputs == {"name": "  Ann "}
        assert Tagged._contract is contract
        assert Tagged._contract.get("tags").default == ["core"]
