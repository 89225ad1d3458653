from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

User = get_user_model()


class Command(BaseCommand):
    help = 'Create (or promote) a user with the admin role'

    def add_arguments(self, parser):
        parser.add_argument('--username', default='admin', help='Login of the admin user')
        parser.add_argument('--email', required=True, help='Email of the admin user')
        parser.add_argument('--password', required=True, help='Initial password')
        parser.add_argument('--name', default='Administrador', help='Display name')

    def handle(self, *args, **options):
        username = options['username']
        email = options['email'].strip().lower()

        user = User.objects.filter(username=username).first()
        if user is None and User.objects.filter(email__iexact=email).exists():
            raise CommandError(f'Email {email} já está em uso por outro usuário')

        if user is None:
            User.objects.create_superuser(
                username=username,
                email=email,
                password=options['password'],
                name=options['name'],
                role='admin'
            )
            self.stdout.write(self.style.SUCCESS(f'✓ Created admin user: {username}'))
            return

        user.role = 'admin'
        user.is_staff = True
        user.is_superuser = True
        user.is_active = True
        user.set_password(options['password'])
        user.save()
        self.stdout.write(self.style.SUCCESS(f'✓ Promoted existing user to admin: {username}'))
