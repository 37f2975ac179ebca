"""Demo traders written into a branch the first time it is read empty."""
from .schemas import TraderDraft, TraderStatus

SEED_TRADERS = [
    TraderDraft(
        name="CAPITAL JOINERY LIMITED",
        status=TraderStatus.ACTIVE,
        last_activity="15/07/2024",
        description="Bespoke joinery and staircases for residential refurbishments.",
        rating=4.7,
        reviews=38,
        website="https://capitaljoinery.example.co.uk",
        phone="020 8660 1234",
        address="12 Brighton Road, Purley CR8 3AB",
        main_category="Joiner",
        categories="Joiner, Carpenter, Staircase specialist",
        owner_name="Daniel Reeves",
        workday_timing="Mon-Fri 8am-5pm",
        employee_count=1,
        estimated_annual_revenue=53699,
        estimated_company_value=60938.55,
    ),
    TraderDraft(
        name="FIRST CARPENTRY LTD",
        status=TraderStatus.ACTIVE,
        last_activity="02/07/2024",
        description="Second fix carpentry, doors and skirting.",
        rating=4.9,
        reviews=112,
        phone="01737 555 210",
        address="4 Station Approach, Coulsdon CR5 2NS",
        main_category="Carpenter",
        categories="Carpenter, Kitchen fitter",
        owner_name="Sam Okafor",
        workday_timing="Mon-Sat 7:30am-6pm",
        employee_count=2,
        estimated_annual_revenue=99148,
        estimated_company_value=65306.41,
    ),
    TraderDraft(
        name="BUILDER PLUS LTD",
        status=TraderStatus.NEW_LEAD,
        description="General builder, extensions and loft conversions.",
        rating=4.2,
        reviews=17,
        website="https://builderplus.example.co.uk",
        phone="+44 20 8123 4567",
        address="88 Godstone Road, Kenley CR8 5AA",
        main_category="Builder",
        categories="Builder, Loft conversion specialist",
        employee_count=4,
        estimated_annual_revenue=224168,
        estimated_company_value=159647.1,
    ),
    TraderDraft(
        name="HARRIS CARPENTRY LIMITED",
        status=TraderStatus.CALL_BACK,
        last_activity="20/06/2024",
        call_back_date="2024-08-01T09:00:00Z",
        phone="07700 900123",
        address="23 Foxley Lane, Purley CR8 3EE",
        main_category="Carpenter",
        categories="Carpenter",
        owner_name="Leanne Harris",
        notes="Asked for trade account pricing on sheet materials.",
        employee_count=4,
        estimated_annual_revenue=299192,
    ),
    TraderDraft(
        name="ROMA JOINERY AND GLAZING LIMITED",
        status=TraderStatus.INACTIVE,
        last_activity="11/01/2024",
        description="Timber windows, glazing and sash restoration.",
        rating=4.4,
        reviews=29,
        phone="01883 622 019",
        address="Unit 3, Hillside Trading Estate, Caterham CR3 6BX",
        main_category="Glazier",
        categories="Glazier, Joiner",
        temporarily_closed_on="Sunday",
        employee_count=5,
        estimated_annual_revenue=235360,
        estimated_company_value=136313.9,
    ),
    TraderDraft(
        name="WILD OAK CARPENTRY LIMITED",
        status=TraderStatus.ACTIVE,
        last_activity="30/07/2024",
        description="Oak framing, garden rooms and decking.",
        rating=5.0,
        reviews=64,
        website="https://wildoak.example.co.uk",
        phone="020 8763 8800",
        address="5 Old Lodge Lane, Purley CR8 4DH",
        main_category="Carpenter",
        categories="Carpenter, Decking contractor, Garden building supplier",
        owner_name="Marta Novak",
        workday_timing="Mon-Fri 8am-4:30pm",
        employee_count=12,
        estimated_annual_revenue=459732,
        estimated_company_value=416194.1,
    ),
]
