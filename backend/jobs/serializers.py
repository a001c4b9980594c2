from rest_framework import serializers

from jobs.commands import job_counts
from jobs.models import Application, Interview, Job


class JobListSerializer(serializers.ModelSerializer):
    company = serializers.CharField(source="company.name", read_only=True)
    company_public_id = serializers.UUIDField(source="company.public_id", read_only=True)

    class Meta:
        model = Job
        fields = ("public_id", "title", "location", "status", "company", "company_public_id", "created_at")


class JobDetailSerializer(JobListSerializer):
    counts = serializers.SerializerMethodField()

    class Meta(JobListSerializer.Meta):
        fields = JobListSerializer.Meta.fields + ("description", "counts")

    def get_counts(self, obj):
        return job_counts(obj)


class ApplySerializer(serializers.Serializer):
    cover_letter = serializers.CharField(required=False, allow_blank=True, default="", max_length=10000)


class ScheduleInterviewSerializer(serializers.Serializer):
    scheduled_at = serializers.DateTimeField()
    location = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class ApplicationSerializer(serializers.ModelSerializer):
    job = JobListSerializer(read_only=True)

    class Meta:
        model = Application
        fields = ("public_id", "job", "status", "cover_letter", "created_at")


class InterviewSerializer(serializers.ModelSerializer):
    application_public_id = serializers.UUIDField(source="application.public_id", read_only=True)
    application_status = serializers.CharField(source="application.status", read_only=True)

    class Meta:
        model = Interview
        fields = ("public_id", "application_public_id", "application_status", "scheduled_at", "location")
