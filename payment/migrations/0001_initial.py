import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('user', '0001_initial'),
        ('education', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('month', models.DateField(help_text='First day of the paid month', verbose_name='Month')),
                ('amount', models.PositiveIntegerField(help_text='Amount in UAH', validators=[django.core.validators.MinValueValidator(1)], verbose_name='Amount')),
                ('method', models.CharField(choices=[('cash', 'Готівка'), ('account', 'На рахунок')], max_length=20, verbose_name='Method')),
                ('paid_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Paid At')),
                ('note', models.TextField(blank=True, null=True, verbose_name='Note')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_payments', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='education.group', verbose_name='Group')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='user.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Payment',
                'verbose_name_plural': 'Payments',
                'db_table': 'payments',
                'ordering': ['-paid_at'],
                'indexes': [
                    models.Index(fields=['group', 'month'], name='payments_group_month_idx'),
                    models.Index(fields=['student'], name='payments_student_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('student', 'group', 'month', 'method', 'paid_at'), name='unique_payment_entry'),
                ],
            },
        ),
    ]
