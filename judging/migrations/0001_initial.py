from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ts', models.DateTimeField(auto_now_add=True)),
                ('action', models.CharField(max_length=64)),
                ('payload', models.JSONField(blank=True, default=dict)),
            ],
            options={
                'ordering': ('-ts',),
            },
        ),
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=120)),
                ('slug', models.SlugField(unique=True)),
                ('date', models.DateField(blank=True, null=True)),
                ('location', models.CharField(blank=True, max_length=120)),
                ('notes', models.TextField(blank=True)),
            ],
            options={
                'ordering': ('-date', 'name'),
            },
        ),
        migrations.CreateModel(
            name='Bracket',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('category', models.CharField(max_length=64)),
                ('format', models.CharField(choices=[('single-elim', 'Single elimination'), ('repechage', 'Repechage')], default='single-elim', max_length=16)),
                ('variant', models.CharField(choices=[('V1', 'Heats of 3'), ('V2', 'Man on man')], default='V1', max_length=4)),
                ('preferred_heat_size', models.CharField(default='auto', max_length=8)),
                ('payload', models.JSONField(default=dict)),
                ('version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='brackets', to='judging.event')),
            ],
            options={
                'ordering': ('event', 'category'),
            },
        ),
        migrations.CreateModel(
            name='Heat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('round_no', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('round_name', models.CharField(max_length=32)),
                ('heat_number', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('is_repechage', models.BooleanField(default=False)),
                ('round_ref', models.CharField(max_length=16)),
                ('heat_size', models.PositiveIntegerField(default=4)),
                ('status', models.CharField(choices=[('planned', 'Planned'), ('open', 'Open'), ('closed', 'Closed')], default='planned', max_length=8)),
                ('judge_count', models.PositiveIntegerField(default=3, validators=[django.core.validators.MinValueValidator(1)])),
                ('max_waves', models.PositiveIntegerField(default=12, validators=[django.core.validators.MinValueValidator(1)])),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('bracket', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='heats', to='judging.bracket')),
            ],
            options={
                'ordering': ('bracket', 'is_repechage', 'round_no', 'heat_number'),
            },
        ),
        migrations.CreateModel(
            name='Participant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('category', models.CharField(max_length=64)),
                ('seed', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('name', models.CharField(max_length=120)),
                ('country', models.CharField(blank=True, max_length=80)),
                ('license', models.CharField(blank=True, max_length=64)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='judging.event')),
            ],
            options={
                'ordering': ('event', 'category', 'seed'),
            },
        ),
        migrations.CreateModel(
            name='HeatEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('color', models.CharField(choices=[('RED', 'Red'), ('WHITE', 'White'), ('YELLOW', 'Yellow'), ('BLUE', 'Blue'), ('GREEN', 'Green'), ('BLACK', 'Black')], max_length=8)),
                ('seed', models.PositiveIntegerField(blank=True, null=True)),
                ('placeholder', models.CharField(blank=True, max_length=64)),
                ('is_bye', models.BooleanField(default=False)),
                ('heat', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='judging.heat')),
                ('participant', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='heat_entries', to='judging.participant')),
            ],
            options={
                'ordering': ('heat', 'position'),
            },
        ),
        migrations.CreateModel(
            name='InterferenceCall',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('surfer', models.CharField(max_length=8)),
                ('wave_number', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('judge_id', models.CharField(max_length=32)),
                ('call_type', models.CharField(choices=[('INT1', 'Interference (second wave halved)'), ('INT2', 'Interference (second wave removed)')], max_length=4)),
                ('is_head_judge_override', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('heat', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='interference_calls', to='judging.heat')),
            ],
            options={
                'ordering': ('heat', 'created_at'),
            },
        ),
        migrations.CreateModel(
            name='Score',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('surfer', models.CharField(max_length=8)),
                ('wave_number', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('judge_id', models.CharField(max_length=32)),
                ('score', models.DecimalField(decimal_places=2, max_digits=4, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('10'))])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('heat', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scores', to='judging.heat')),
            ],
            options={
                'ordering': ('heat', 'surfer', 'wave_number', 'judge_id'),
            },
        ),
        migrations.AddConstraint(
            model_name='participant',
            constraint=models.UniqueConstraint(fields=('event', 'category', 'seed'), name='unique_seed_per_category'),
        ),
        migrations.AddConstraint(
            model_name='bracket',
            constraint=models.UniqueConstraint(fields=('event', 'category'), name='unique_bracket_per_category'),
        ),
        migrations.AddConstraint(
            model_name='heat',
            constraint=models.UniqueConstraint(fields=('bracket', 'round_ref'), name='unique_heat_ref_per_bracket'),
        ),
        migrations.AddConstraint(
            model_name='heatentry',
            constraint=models.UniqueConstraint(fields=('heat', 'position'), name='unique_lane_per_heat'),
        ),
        migrations.AddConstraint(
            model_name='score',
            constraint=models.UniqueConstraint(fields=('heat', 'surfer', 'wave_number', 'judge_id'), name='unique_mark_per_judge_wave'),
        ),
    ]
