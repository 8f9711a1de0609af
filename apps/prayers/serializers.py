from rest_framework import serializers


class LocationQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


class PrayerTimesQuerySerializer(LocationQuerySerializer):
    method = serializers.IntegerField(default=3, min_value=0, max_value=99)
    school = serializers.ChoiceField(choices=[(1, "Shafi"), (2, "Hanafi")], default=1)
