"""Tests for TemplateService."""

from uuid import uuid4

import pytest

from core.exceptions import InvalidRequestError, NotFoundError
from core.models import MessageTemplateCreate, MessageType
from core.services.template_service import (
    RECURRING_PAYMENT_FAILED_TEMPLATE,
    RECURRING_THANK_YOU_TEMPLATE,
)


def _template(name: str, category: str = "ThankYou", message_type=MessageType.EMAIL, **overrides):
    data = {
        "name": name,
        "category": category,
        "message_type": message_type,
        "content": "Hello {{donorName}}",
    }
    data.update(overrides)
    return MessageTemplateCreate(**data)


class TestCreate:

    def test_placeholders_derived_from_content(self, template_service):
        template = template_service.create(_template("A", content="{{ a }} and {{b}} and {{a}}"))
        assert template.available_placeholders == ["a", "b"]

    def test_declared_placeholders_kept(self, template_service):
        template = template_service.create(_template("A", available_placeholders=["donorName", "extra"]))
        assert template.available_placeholders == ["donorName", "extra"]

    def test_duplicate_name_rejected(self, template_service):
        template_service.create(_template("A"))
        with pytest.raises(InvalidRequestError, match="already exists"):
            template_service.create(_template("A"))

    def test_new_default_unsets_previous(self, template_service):
        first = template_service.create(_template("A", is_default=True))
        second = template_service.create(_template("B", is_default=True))

        assert template_service.get_by_id(first.id).is_default is False
        assert template_service.get_by_id(second.id).is_default is True

    def test_default_is_scoped_to_category_and_type(self, template_service):
        email = template_service.create(_template("A", is_default=True))
        template_service.create(_template("B", message_type=MessageType.SMS, is_default=True))
        template_service.create(_template("C", category="Billing", is_default=True))

        assert template_service.get_by_id(email.id).is_default is True


class TestLookup:

    def test_list_orders_defaults_first_then_name(self, template_service):
        template_service.create(_template("Zeta"))
        template_service.create(_template("Alpha"))
        template_service.create(_template("Mid", is_default=True))

        names = [t.name for t in template_service.list_templates()]
        assert names == ["Mid", "Alpha", "Zeta"]

    def test_list_filters_by_type(self, template_service):
        template_service.create(_template("E"))
        template_service.create(_template("S", message_type=MessageType.SMS))

        assert [t.name for t in template_service.list_templates(MessageType.SMS)] == ["S"]

    def test_list_by_category(self, template_service):
        template_service.create(_template("A"))
        template_service.create(_template("B", category="Billing"))

        assert [t.name for t in template_service.list_by_category("Billing")] == ["B"]

    def test_get_default_falls_back_to_first(self, template_service):
        template_service.create(_template("Beta"))
        template_service.create(_template("Alpha"))

        assert template_service.get_default("ThankYou", MessageType.EMAIL).name == "Alpha"

    def test_get_default_prefers_flagged(self, template_service):
        template_service.create(_template("Alpha"))
        template_service.create(_template("Beta", is_default=True))

        assert template_service.get_default("ThankYou", MessageType.EMAIL).name == "Beta"

    def test_get_default_none_when_empty(self, template_service):
        assert template_service.get_default("ThankYou", MessageType.EMAIL) is None

    def test_get_by_name(self, template_service):
        created = template_service.create(_template("A"))
        assert template_service.get_by_name("A").id == created.id
        assert template_service.get_by_name("B") is None


class TestUpdates:

    def test_set_as_default(self, template_service):
        first = template_service.create(_template("A", is_default=True))
        second = template_service.create(_template("B"))

        updated = template_service.set_as_default(second.id)

        assert updated.is_default is True
        assert template_service.get_by_id(first.id).is_default is False

    def test_set_as_default_unknown_raises(self, template_service):
        with pytest.raises(NotFoundError):
            template_service.set_as_default(uuid4())

    def test_update_content_rederives_placeholders(self, template_service, audit):
        template = template_service.create(_template("A"))

        updated = template_service.update_content(
            template.id, "Dear {{donorName}}, see you {{date}}", default_subject="Hi {{donorName}}"
        )

        assert updated.content == "Dear {{donorName}}, see you {{date}}"
        assert updated.available_placeholders == ["donorName", "date"]
        assert updated.default_subject == "Hi {{donorName}}"
        assert "content" in audit.for_entity(template.id)[-1]["changes"]

    def test_update_content_rejects_empty(self, template_service):
        template = template_service.create(_template("A"))
        with pytest.raises(InvalidRequestError):
            template_service.update_content(template.id, "   ")


class TestSeedDefaults:

    def test_seed_creates_billing_templates_once(self, template_service):
        created = template_service.seed_default_templates()

        assert {t.name for t in created} == {RECURRING_THANK_YOU_TEMPLATE, RECURRING_PAYMENT_FAILED_TEMPLATE}
        assert template_service.seed_default_templates() == []

    def test_thank_you_template_placeholders(self, template_service):
        template_service.seed_default_templates()

        template = template_service.get_by_name(RECURRING_THANK_YOU_TEMPLATE)
        assert set(template.available_placeholders) == {
            "donorName", "donationAmountInDollars", "frequency", "nextDonationDate",
        }
