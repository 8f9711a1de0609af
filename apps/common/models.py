from django.db import models, transaction
from django.db.models import F

from apps.common.identifiers import format_identifier


class SequenceCounter(models.Model):
    key = models.CharField(max_length=32, primary_key=True)
    value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.key}={self.value}"

    @classmethod
    def next_value(cls, key):
        # The UPDATE holds the row lock until the surrounding transaction ends,
        # so concurrent writers serialize on the counter row.
        with transaction.atomic():
            cls.objects.get_or_create(key=key)
            cls.objects.filter(key=key).update(value=F("value") + 1)
            return cls.objects.get(key=key).value


def next_identifier(prefix):
    return format_identifier(prefix, SequenceCounter.next_value(prefix))


class SequentialCodeModel(models.Model):
    code_prefix = ""

    code = models.CharField(max_length=20, unique=True, editable=False)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.code:
            return super().save(*args, **kwargs)
        try:
            with transaction.atomic():
                self.code = next_identifier(self.code_prefix)
                super().save(*args, **kwargs)
        except Exception:
            # The counter increment was rolled back with the insert.
            self.code = ""
            raise
