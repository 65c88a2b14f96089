import decimal

import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import marketplace.models
import marketplace.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('contact_number', models.CharField(blank=True, default='', help_text='Optional. Enter contact number in international format.', max_length=20, validators=[marketplace.validators.validate_contact_number], verbose_name='contact number')),
                ('role', models.CharField(choices=[('mine_owner', 'Mine Owner'), ('investor', 'Investor'), ('consultant', 'Consultant'), ('admin', 'Administrator'), ('mineral_owner', 'Mineral Owner'), ('mineral_manager', 'Mineral Manager'), ('customer', 'Customer')], default='customer', help_text='Marketplace role of the account.', max_length=20, verbose_name='role')),
                ('business_details', models.JSONField(blank=True, default=dict, help_text='Business name, registration number, contact person, products offered.', verbose_name='business details')),
                ('preferences', models.JSONField(blank=True, default=dict, help_text='Investment interests and budget range.', verbose_name='preferences')),
                ('is_verified', models.BooleanField(default=False, help_text='Indicates whether the account has been verified by an administrator.', verbose_name='verified status')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='user_email_idx'),
                    models.Index(fields=['role'], name='user_role_idx'),
                    models.Index(fields=['is_verified'], name='user_verified_idx'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Mine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, verbose_name='name')),
                ('location', models.CharField(max_length=300, verbose_name='location')),
                ('commodity_type', models.CharField(help_text='For example "Coal (Anthracite)" or "Gold"', max_length=100, verbose_name='commodity type')),
                ('status', models.CharField(choices=[('Active', 'Active'), ('Idle', 'Idle'), ('Exploration', 'Exploration'), ('Development', 'Development')], default='Exploration', max_length=20, verbose_name='status')),
                ('price', models.DecimalField(decimal_places=2, help_text='Asking price for the listing', max_digits=14, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'), message='Price cannot be negative.')], verbose_name='price')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('legal_ownership', models.JSONField(blank=True, default=dict, verbose_name='legal ownership')),
                ('geology_resource', models.JSONField(blank=True, default=dict, verbose_name='geology and resources')),
                ('infrastructure', models.JSONField(blank=True, default=dict, verbose_name='infrastructure')),
                ('financials', models.JSONField(blank=True, default=dict, verbose_name='financials')),
                ('esg', models.JSONField(blank=True, default=dict, verbose_name='environmental, social and governance')),
                ('operational', models.JSONField(blank=True, default=dict, verbose_name='operational')),
                ('market', models.JSONField(blank=True, default=dict, verbose_name='market')),
                ('media', models.JSONField(blank=True, default=list, verbose_name='media URLs')),
                ('documents', models.JSONField(blank=True, default=list, verbose_name='document links')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('owner', models.ForeignKey(help_text='User listing this mine', on_delete=django.db.models.deletion.CASCADE, related_name='mines', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'mine',
                'verbose_name_plural': 'mines',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['owner'], name='mine_owner_idx'),
                    models.Index(fields=['status'], name='mine_status_idx'),
                    models.Index(fields=['commodity_type'], name='mine_commodity_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Mineral',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, verbose_name='name')),
                ('mineral_type', models.CharField(choices=[('metallic', 'Metallic'), ('non-metallic', 'Non-metallic'), ('precious', 'Precious'), ('industrial', 'Industrial'), ('energy', 'Energy'), ('gemstone', 'Gemstone')], max_length=20, verbose_name='mineral type')),
                ('description', models.TextField(blank=True, default='', validators=[django.core.validators.MaxLengthValidator(1000)], verbose_name='description')),
                ('price_per_unit', models.DecimalField(decimal_places=2, help_text='Price per ton, kg or ounce', max_digits=14, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.01'), message='Price per unit must be greater than 0.')], verbose_name='price per unit')),
                ('currency', models.CharField(default='USD', max_length=10, verbose_name='currency')),
                ('available_quantity', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'), message='Quantity cannot be negative.')], verbose_name='available quantity')),
                ('latitude', models.FloatField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(-90), django.core.validators.MaxValueValidator(90)], verbose_name='latitude')),
                ('longitude', models.FloatField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(-180), django.core.validators.MaxValueValidator(180)], verbose_name='longitude')),
                ('commodity_specs', models.JSONField(blank=True, default=dict, verbose_name='commodity specifications')),
                ('quantity', models.JSONField(blank=True, default=dict, verbose_name='quantity')),
                ('logistics', models.JSONField(blank=True, default=dict, verbose_name='logistics')),
                ('legal_compliance', models.JSONField(blank=True, default=dict, verbose_name='legal and compliance')),
                ('pricing', models.JSONField(blank=True, default=dict, verbose_name='pricing and payment terms')),
                ('seller_credibility', models.JSONField(blank=True, default=dict, verbose_name='seller credibility')),
                ('market', models.JSONField(blank=True, default=dict, verbose_name='market')),
                ('is_active', models.BooleanField(default=True, verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('last_updated_at', models.DateTimeField(auto_now=True, verbose_name='last updated at')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='minerals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'mineral',
                'verbose_name_plural': 'minerals',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['mineral_type'], name='mineral_type_idx'),
                    models.Index(fields=['is_active'], name='mineral_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MineAttachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('file', models.FileField(blank=True, upload_to=marketplace.models.attachment_upload_path, validators=[marketplace.validators.validate_pdf_document], verbose_name='file')),
                ('filename', models.CharField(max_length=255, verbose_name='original filename')),
                ('url', models.CharField(blank=True, default='', max_length=500, verbose_name='url')),
                ('mimetype', models.CharField(max_length=100, verbose_name='MIME type')),
                ('size', models.PositiveBigIntegerField(verbose_name='size in bytes')),
                ('uploaded_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='uploaded at')),
                ('mine', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attachments', to='marketplace.mine')),
            ],
            options={
                'verbose_name': 'mine attachment',
                'verbose_name_plural': 'mine attachments',
                'ordering': ['uploaded_at', 'id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='MineralAttachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('file', models.FileField(blank=True, upload_to=marketplace.models.attachment_upload_path, validators=[marketplace.validators.validate_pdf_document], verbose_name='file')),
                ('filename', models.CharField(max_length=255, verbose_name='original filename')),
                ('url', models.CharField(blank=True, default='', max_length=500, verbose_name='url')),
                ('mimetype', models.CharField(max_length=100, verbose_name='MIME type')),
                ('size', models.PositiveBigIntegerField(verbose_name='size in bytes')),
                ('uploaded_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='uploaded at')),
                ('mineral', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attachments', to='marketplace.mineral')),
            ],
            options={
                'verbose_name': 'mineral attachment',
                'verbose_name_plural': 'mineral attachments',
                'ordering': ['uploaded_at', 'id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Offer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, help_text='Offered amount (must be greater than 0)', max_digits=14, verbose_name='amount')),
                ('message', models.TextField(blank=True, default='', verbose_name='message')),
                ('status', models.CharField(choices=[('Pending', 'Pending'), ('Accepted', 'Accepted'), ('Rejected', 'Rejected')], default='Pending', max_length=10, verbose_name='status')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('investor', models.ForeignKey(help_text='Investor making the offer', on_delete=django.db.models.deletion.CASCADE, related_name='offers', to=settings.AUTH_USER_MODEL)),
                ('mine', models.ForeignKey(help_text='Mine the offer is made on', on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='marketplace.mine')),
            ],
            options={
                'verbose_name': 'offer',
                'verbose_name_plural': 'offers',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['mine', 'status'], name='offer_mine_status_idx'),
                    models.Index(fields=['investor'], name='offer_investor_idx'),
                    models.Index(fields=['status'], name='offer_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(status='Accepted'), fields=('mine',), name='one_accepted_offer_per_mine'),
                ],
            },
        ),
        migrations.CreateModel(
            name='HeavyMachine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, verbose_name='name')),
                ('category', models.CharField(choices=[('excavator', 'Excavator'), ('bulldozer', 'Bulldozer'), ('loader', 'Loader'), ('grader', 'Grader'), ('crane', 'Crane'), ('compactor', 'Compactor'), ('dump-truck', 'Dump Truck'), ('backhoe', 'Backhoe'), ('forklift', 'Forklift'), ('concrete-mixer', 'Concrete Mixer'), ('drill', 'Drill'), ('generator', 'Generator'), ('other', 'Other')], max_length=20, verbose_name='category')),
                ('brand', models.CharField(blank=True, default='', max_length=100, verbose_name='brand')),
                ('model_name', models.CharField(max_length=100, verbose_name='model')),
                ('year', models.PositiveIntegerField(validators=[marketplace.validators.validate_machine_year], verbose_name='year')),
                ('purchase_price', models.DecimalField(blank=True, decimal_places=2, help_text='"Buy now" price if available', max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='purchase price')),
                ('rental_price_per_day', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='rental price per day')),
                ('status', models.CharField(choices=[('available', 'Available'), ('rented', 'Rented'), ('sold', 'Sold'), ('maintenance', 'Maintenance'), ('reserved', 'Reserved')], default='available', max_length=20, verbose_name='status')),
                ('serial_number', models.CharField(blank=True, default='', max_length=100, verbose_name='serial number')),
                ('address', models.CharField(blank=True, default='', max_length=300, verbose_name='address')),
                ('country', models.CharField(blank=True, default='', max_length=100, verbose_name='country')),
                ('latitude', models.FloatField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(-90), django.core.validators.MaxValueValidator(90)], verbose_name='latitude')),
                ('longitude', models.FloatField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(-180), django.core.validators.MaxValueValidator(180)], verbose_name='longitude')),
                ('images', models.JSONField(blank=True, default=list, help_text='List of {"url", "caption", "is_primary"} objects', verbose_name='images')),
                ('description', models.TextField(blank=True, default='', validators=[django.core.validators.MaxLengthValidator(2000)], verbose_name='description')),
                ('specs', models.JSONField(blank=True, default=dict, help_text='For example {"enginePower": "250kW", "weight": "20t"}', verbose_name='specifications')),
                ('is_active', models.BooleanField(default=True, verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('last_updated_at', models.DateTimeField(auto_now=True, verbose_name='last updated at')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='created_machines', to=settings.AUTH_USER_MODEL)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='machines', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'heavy machine',
                'verbose_name_plural': 'heavy machines',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['category', 'status'], name='machine_category_status_idx'),
                    models.Index(fields=['brand', 'model_name', 'year'], name='machine_brand_model_year_idx'),
                    models.Index(fields=['status'], name='machine_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MachineRental',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_date', models.DateTimeField(verbose_name='start date')),
                ('end_date', models.DateTimeField(blank=True, null=True, verbose_name='end date')),
                ('price_per_day', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='price per day')),
                ('notes', models.TextField(blank=True, default='', verbose_name='notes')),
                ('returned_at', models.DateTimeField(blank=True, null=True, verbose_name='returned at')),
                ('status', models.CharField(choices=[('active', 'Active'), ('returned', 'Returned'), ('cancelled', 'Cancelled')], default='active', max_length=10, verbose_name='status')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('machine', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rentals', to='marketplace.heavymachine')),
                ('renter', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='machine_rentals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'machine rental',
                'verbose_name_plural': 'machine rentals',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='MachinePurchase',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('price', models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='price')),
                ('date', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date')),
                ('notes', models.TextField(blank=True, default='', verbose_name='notes')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('buyer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='machine_purchases', to=settings.AUTH_USER_MODEL)),
                ('machine', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchases', to='marketplace.heavymachine')),
            ],
            options={
                'verbose_name': 'machine purchase',
                'verbose_name_plural': 'machine purchases',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='MaintenanceRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, verbose_name='title')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('cost', models.DecimalField(decimal_places=2, default=decimal.Decimal('0.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.00'))], verbose_name='cost')),
                ('performed_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='performed at')),
                ('performed_by', models.CharField(blank=True, default='', help_text='Vendor name or user', max_length=200, verbose_name='performed by')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('machine', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='maintenance_history', to='marketplace.heavymachine')),
            ],
            options={
                'verbose_name': 'maintenance record',
                'verbose_name_plural': 'maintenance records',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.TextField(verbose_name='content')),
                ('seen', models.BooleanField(default=False, verbose_name='seen')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('mine', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='messages', to='marketplace.mine')),
                ('receiver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='received_messages', to=settings.AUTH_USER_MODEL)),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sent_messages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'message',
                'verbose_name_plural': 'messages',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['sender', 'receiver'], name='message_sender_receiver_idx'),
                    models.Index(fields=['mine'], name='message_mine_idx'),
                ],
            },
        ),
    ]
