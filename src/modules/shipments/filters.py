import django_filters

from modules.core.models import ChangeLogEntry


class ChangeLogFilter(django_filters.FilterSet):
    """Change feed cursor: entries strictly after ``after`` (an entry sequence)."""

    after = django_filters.NumberFilter(field_name="sequence", lookup_expr="gt")
    tracking_number = django_filters.CharFilter(field_name="aggregate_id", lookup_expr="iexact")
    kind = django_filters.CharFilter(field_name="kind", lookup_expr="iexact")

    class Meta:
        model = ChangeLogEntry
        fields = ["after", "tracking_number", "kind"]
