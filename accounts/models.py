"""Principal model: the administrative credential store."""

from django.db import models


class Principal(models.Model):
    """A credential allowed to issue and administer tokens.

    ``secret_data`` is an opaque hash string; the scheme decides how a
    presented secret is checked against it. Only a password-based scheme
    exists today.
    """

    class Scheme(models.TextChoices):
        BASIC = "BASIC", "Basic (password)"

    id = models.CharField(primary_key=True, max_length=150)
    scheme = models.CharField(
        max_length=20,
        choices=Scheme.choices,
        default=Scheme.BASIC,
    )
    secret_data = models.TextField()

    class Meta:
        db_table = "auth"
        verbose_name = "principal"
        verbose_name_plural = "principals"
        ordering = ["id"]

    def __str__(self):
        return f"{self.id} ({self.get_scheme_display()})"
